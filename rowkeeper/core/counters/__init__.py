"""
The counter engine: increment policy, clamped value application and
single-hop propagation across counter links.
"""
