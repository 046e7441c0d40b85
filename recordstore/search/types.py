"""
Result types returned by search index implementations.
"""

from dataclasses import dataclass


@dataclass
class SearchHit:
    """A single search match."""

    doc_id: str
    """Document identity, resolvable to (key, topic) via parse_doc_id"""

    score: float
    """Match score; higher is better. Substring hits always outrank fuzzy hits"""
