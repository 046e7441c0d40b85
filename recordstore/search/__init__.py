"""
Search index capability: topic-scoped substring/fuzzy matching over record content.
The index is a derived projection of the record store and can always be rebuilt from it.
"""

from .index import ISearchIndex, SimpleInMemorySearchIndex
from .sqlite_index import SQLiteSearchIndex
from .types import SearchHit
from .rebuild import rebuild_index

__all__ = [
    'ISearchIndex',
    'SimpleInMemorySearchIndex',
    'SQLiteSearchIndex',
    'SearchHit',
    'rebuild_index'
]
