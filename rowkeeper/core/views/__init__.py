"""JSON API views for counters and counter links."""
