"""
Record type shared by the store, the search index, the codec and the API.
"""

import time
from dataclasses import dataclass, asdict, replace
from typing import Dict, Tuple


def now_ms() -> int:
    """Wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


@dataclass
class Record:
    key: str
    topic: str
    content: str
    created_at: int = 0  # epoch ms, set once at first write
    updated_at: int = 0  # epoch ms, set on every write

    @property
    def composite_key(self) -> Tuple[str, str]:
        return (self.key, self.topic)

    @property
    def doc_id(self) -> str:
        """Index document identity; the topic length prefix keeps keys with '/' unambiguous."""
        return make_doc_id(self.key, self.topic)

    def with_timestamps(self, created_at: int, updated_at: int) -> "Record":
        return replace(self, created_at=created_at, updated_at=updated_at)

    def to_dict(self) -> Dict:
        return asdict(self)


def make_doc_id(key: str, topic: str) -> str:
    return f"{len(topic)}:{topic}/{key}"


def parse_doc_id(doc_id: str) -> Tuple[str, str]:
    """Split a document id back into (key, topic)."""
    length, _, rest = doc_id.partition(":")
    if not length.isdigit():
        raise ValueError(f"Invalid document id: {doc_id!r}")
    size = int(length)
    topic, sep, key = rest[:size], rest[size:size + 1], rest[size + 1:]
    if sep != "/" or len(topic) != size:
        raise ValueError(f"Invalid document id: {doc_id!r}")
    return key, topic
