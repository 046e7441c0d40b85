"""
Ingestion layer glue between the API and the core: topic normalisation,
reconciliation, log submission and search result resolution.
"""

from typing import List, Optional

from . import codec
from .append_log import AppendLog
from .config import DEFAULT_TOPIC
from .errors import IndexWriteFailure, NotFound
from .reconciler import ApplyResult, Reconciler
from .schema import Record, parse_doc_id
from .store import IRecordStore
from ..search.index import ISearchIndex
from ..util.logging import logger


def normalize_topic(topic: Optional[str]) -> str:
    """Blank or missing topics map to the default namespace."""
    if topic is None or not topic.strip():
        return DEFAULT_TOPIC
    return topic.strip()


def _require_utf8(field_name: str, value: str) -> None:
    # Log lines are UTF-8 JSON, so lone surrogates cannot be logged
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ValueError(f"{field_name} is not valid UTF-8 text") from e


class RecordService:
    def __init__(self, reconciler: Reconciler, log: AppendLog, store: IRecordStore, index: ISearchIndex):
        self.reconciler = reconciler
        self.log = log
        self.store = store
        self.index = index

    def add(self, key: str, content: str, topic: Optional[str] = None) -> ApplyResult:
        """Apply a live write, then queue its log line.

        StoreWriteFailure propagates and nothing is logged. IndexWriteFailure is
        absorbed: the record is stored and logged, and the result says indexed=False.
        """
        if not key or not key.strip():
            raise ValueError("key cannot be empty")

        record = Record(key=key, topic=normalize_topic(topic), content=content)
        for field_name in ("key", "topic", "content"):
            _require_utf8(field_name, getattr(record, field_name))

        try:
            result = self.reconciler.apply(record)
        except IndexWriteFailure as e:
            result = e.result

        self.log.submit(codec.encode(result.record))
        return result

    def get(self, key: str, topic: Optional[str] = None) -> Optional[Record]:
        return self.store.get(key, normalize_topic(topic))

    def get_or_raise(self, key: str, topic: Optional[str] = None) -> Record:
        record = self.get(key, topic)
        if record is None:
            raise NotFound(f"no record for key={key!r} topic={normalize_topic(topic)!r}")
        return record

    def search(self, query: str, topic: Optional[str] = None, limit: int = 20, offset: int = 0) -> List[Record]:
        """Search within a topic and resolve hits back to stored records."""
        hits = self.index.search(normalize_topic(topic), query, limit=limit, offset=offset)

        ids = []
        for hit in hits:
            try:
                ids.append(parse_doc_id(hit.doc_id))
            except ValueError:
                logger.warning(f"Ignoring unparseable document id from index: {hit.doc_id!r}")
        return self.store.get_many(ids)
