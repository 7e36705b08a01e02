"""
Business logic handlers for counter operations.

Handlers wrap each mutating operation in a single transaction, take the row
locks they need and return a result dataclass. They are called from views and
are directly testable without HTTP machinery.
"""
