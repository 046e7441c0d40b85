"""
Search index interface and the default in-memory implementation.
"""

import hashlib
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Tuple

import numpy as np

from .types import SearchHit


class ISearchIndex(ABC):
    """Abstract interface for search index operations."""

    @abstractmethod
    def index(self, doc_id: str, topic: str, content: str) -> None:
        """Add or replace a document."""
        pass

    @abstractmethod
    def search(self, topic: str, query: str, limit: int = 20, offset: int = 0) -> List[SearchHit]:
        """Return matches within `topic`, best first."""
        pass

    @abstractmethod
    def delete(self, doc_id: str) -> None:
        """Delete a document by ID."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all documents from the index."""
        pass

    @abstractmethod
    def count(self) -> int:
        pass


def trigram_vector(text: str, dimension: int = 256) -> np.ndarray:
    """Hash character trigrams of `text` into a unit-length count vector."""
    vector = np.zeros(dimension, dtype=np.float32)
    padded = f"  {text.lower()} "
    for i in range(len(padded) - 2):
        digest = hashlib.md5(padded[i:i + 3].encode("utf-8")).digest()
        vector[int.from_bytes(digest[:4], "little") % dimension] += 1.0

    norm = np.linalg.norm(vector)
    if norm > 0:
        vector /= norm
    return vector


class SimpleInMemorySearchIndex(ISearchIndex):
    """In-memory index: substring hits first, then trigram cosine similarity."""

    def __init__(self, dimension: int = 256, min_similarity: float = 0.3):
        self.dimension = dimension
        self.min_similarity = min_similarity
        self._docs: Dict[str, Tuple[str, str]] = {}   # doc_id -> (topic, lowered content)
        self._vectors: Dict[str, np.ndarray] = {}     # doc_id -> trigram vector
        self._lock = threading.Lock()

    def index(self, doc_id: str, topic: str, content: str) -> None:
        vector = trigram_vector(content, self.dimension)
        with self._lock:
            self._docs[doc_id] = (topic, content.lower())
            self._vectors[doc_id] = vector

    def search(self, topic: str, query: str, limit: int = 20, offset: int = 0) -> List[SearchHit]:
        needle = query.lower()
        if not needle:
            return []

        with self._lock:
            candidates = [(doc_id, text) for doc_id, (doc_topic, text) in self._docs.items() if doc_topic == topic]
            vectors = {doc_id: self._vectors[doc_id] for doc_id, _ in candidates}

        if not candidates:
            return []

        query_vector = trigram_vector(needle, self.dimension)
        hits = []
        for doc_id, text in candidates:
            position = text.find(needle)
            if position >= 0:
                # Earlier matches rank higher; always above any fuzzy score
                score = 2.0 - position / max(len(text), 1)
            else:
                score = float(np.dot(query_vector, vectors[doc_id]))
                if score < self.min_similarity:
                    continue
            hits.append(SearchHit(doc_id=doc_id, score=score))

        hits.sort(key=lambda h: (-h.score, h.doc_id))
        return hits[offset:offset + limit]

    def delete(self, doc_id: str) -> None:
        with self._lock:
            self._docs.pop(doc_id, None)
            self._vectors.pop(doc_id, None)

    def clear(self) -> None:
        with self._lock:
            self._docs.clear()
            self._vectors.clear()

    def count(self) -> int:
        with self._lock:
            return len(self._docs)
