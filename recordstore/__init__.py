"""
Record storage service: SQLite-backed records, a topic-scoped search index,
and an append-only log that can rebuild both after a crash.
"""

__version__ = "1.0.0"
