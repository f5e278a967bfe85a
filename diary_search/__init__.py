"""
Diary Query Cache and Search Service

This package provides a read-through query cache, owner-scoped invalidation
and an in-memory search engine for a paginated, date-partitioned store of
diary entries.
"""

__version__ = "1.0.0"
