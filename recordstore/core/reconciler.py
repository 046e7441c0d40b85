"""
Create/update reconciliation: decides whether an incoming record is new,
stamps its lifecycle timestamps, and writes it to the store and then the index.

Policy:
- Calls for the same (key, topic) are serialised by a per-key lock, and the
  store commit is a compare-and-put so writers in other processes cannot be
  silently overwritten either.
- Store failure aborts the whole apply; nothing is indexed.
- Index failure after the store commit raises IndexWriteFailure but the store
  write stays (the record is retrievable by key, just not searchable until the
  index is rebuilt).
- Replay writes keep the timestamps embedded in the log and only overwrite
  when incoming.updated_at >= stored.updated_at, so replay order across
  workers does not matter. A stale line leaves the store alone but still
  indexes the stored record.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from .errors import IndexWriteFailure, StoreWriteFailure
from .schema import Record, make_doc_id, now_ms
from .store import IRecordStore
from ..search.index import ISearchIndex
from ..util.logging import logger


@dataclass
class ApplyResult:
    record: Record
    action: str  # created|updated|skipped
    indexed: bool = True


class KeyLockTable:
    """Per-key locks, created on demand and evicted once nobody holds or waits on them."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Tuple[str, str], list] = {}  # key -> [lock, refcount]

    @contextmanager
    def hold(self, key: Tuple[str, str]):
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[key] = entry
            entry[1] += 1

        entry[0].acquire()
        try:
            yield
        finally:
            entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class Reconciler:
    """Applies records to the store and index. Safe to share across threads."""

    def __init__(self, store: IRecordStore, index: ISearchIndex,
                 clock: Callable[[], int] = now_ms, max_cas_retries: int = 5):
        self.store = store
        self.index = index
        self.clock = clock
        self.max_cas_retries = max_cas_retries
        self.locks = KeyLockTable()

    def apply(self, incoming: Record, replay: bool = False) -> ApplyResult:
        """Create or update `incoming`.

        Live writes (replay=False) stamp wall-clock time; replay writes keep
        the timestamps carried by the log line.

        Raises:
            StoreWriteFailure: the store write failed; nothing was indexed.
            IndexWriteFailure: the store write committed but indexing failed.
        """
        if not incoming.key:
            raise ValueError("record key cannot be empty")

        with self.locks.hold(incoming.composite_key):
            result = self._commit(incoming, replay)
            if result.action == "skipped":
                logger.log_record_operation("skipped", incoming.key, incoming.topic, status="stale")
            else:
                logger.log_record_operation(result.action, result.record.key, result.record.topic, result.record.content)

            # Skipped lines index the stored record; a fresh index may not hold it yet
            try:
                self.index.index(result.record.doc_id, result.record.topic, result.record.content)
            except Exception as e:
                result.indexed = False
                logger.log_index_failure(result.record.doc_id, e)
                raise IndexWriteFailure(
                    f"indexing {result.record.doc_id} failed: {e}", record=result.record, result=result
                ) from e

            return result

    def _commit(self, incoming: Record, replay: bool) -> ApplyResult:
        for _ in range(self.max_cas_retries):
            try:
                existing = self.store.get(incoming.key, incoming.topic)
            except Exception as e:
                raise StoreWriteFailure(f"store lookup for {incoming.composite_key} failed: {e}") from e

            if existing is None:
                record = self._stamp_create(incoming, replay)
                action = "created"
            else:
                if replay and incoming.updated_at < existing.updated_at:
                    return ApplyResult(record=existing, action="skipped")
                record = self._stamp_update(incoming, existing, replay)
                action = "updated"

            expected = existing.updated_at if existing is not None else None
            try:
                committed = self.store.compare_and_put(record, expected)
            except Exception as e:
                raise StoreWriteFailure(f"store write for {incoming.composite_key} failed: {e}") from e

            if committed:
                return ApplyResult(record=record, action=action)

        raise StoreWriteFailure(
            f"store write for {incoming.composite_key} lost {self.max_cas_retries} compare-and-put races"
        )

    def _stamp_create(self, incoming: Record, replay: bool) -> Record:
        if not replay:
            now = self.clock()
            return incoming.with_timestamps(now, now)

        updated_at = incoming.updated_at or incoming.created_at or self.clock()
        created_at = incoming.created_at or updated_at
        return incoming.with_timestamps(min(created_at, updated_at), updated_at)

    def _stamp_update(self, incoming: Record, existing: Record, replay: bool) -> Record:
        if not replay:
            # Strictly increasing per key, even for two writes in the same millisecond
            updated_at = max(self.clock(), existing.updated_at + 1)
            return incoming.with_timestamps(existing.created_at, updated_at)

        created_at = existing.created_at
        if incoming.created_at:
            created_at = min(created_at, incoming.created_at)
        return incoming.with_timestamps(min(created_at, incoming.updated_at), incoming.updated_at)

    def delete(self, key: str, topic: str) -> bool:
        """Remove a record from the store, then the index."""
        with self.locks.hold((key, topic)):
            try:
                removed = self.store.delete(key, topic)
            except Exception as e:
                raise StoreWriteFailure(f"store delete for {(key, topic)} failed: {e}") from e

            if removed:
                logger.log_record_operation("deleted", key, topic)
                try:
                    self.index.delete(make_doc_id(key, topic))
                except Exception as e:
                    logger.log_index_failure(make_doc_id(key, topic), e)
                    raise IndexWriteFailure(f"index delete for {(key, topic)} failed: {e}") from e
            return removed
