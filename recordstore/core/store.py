"""
Primary record store. SQLite is canonical; the in-memory store backs tests
and STORE_PROVIDER=memory.
"""

import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Generator, Iterable, List, Optional, Tuple

from .schema import Record


class IRecordStore(ABC):
    """Capabilities the reconciler needs from the primary store.

    Implementations must be safe to call from many threads at once.
    """

    @abstractmethod
    def get(self, key: str, topic: str) -> Optional[Record]:
        """Return the record at (key, topic), or None when absent."""
        pass

    @abstractmethod
    def put(self, record: Record) -> None:
        """Insert or replace the record at its composite key."""
        pass

    @abstractmethod
    def compare_and_put(self, record: Record, expected_updated_at: Optional[int]) -> bool:
        """Write only if the stored row still matches what the caller read.

        expected_updated_at=None means the row must not exist yet.
        Returns False when another writer got there first.
        """
        pass

    @abstractmethod
    def delete(self, key: str, topic: str) -> bool:
        """Remove the record. Returns True if one was removed."""
        pass

    @abstractmethod
    def count(self) -> int:
        pass

    @abstractmethod
    def list_records(self, topic: Optional[str] = None, limit: Optional[int] = None) -> List[Record]:
        pass

    def get_many(self, ids: Iterable[Tuple[str, str]]) -> List[Record]:
        """Resolve (key, topic) pairs in order, dropping any that are gone."""
        records = []
        for key, topic in ids:
            record = self.get(key, topic)
            if record is not None:
                records.append(record)
        return records


class SQLiteRecordStore(IRecordStore):
    """SQLite-backed store keyed by PRIMARY KEY (key, topic)."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.init_db()

    @contextmanager
    def get_db(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a SQLite database connection."""
        conn = sqlite3.connect(self.db_path, timeout=30)
        try:
            yield conn
        finally:
            conn.close()

    def init_db(self):
        """Initialize the database with required tables."""
        with self.get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS records (
                    key TEXT NOT NULL,
                    topic TEXT NOT NULL,
                    content TEXT,
                    created_at INTEGER NOT NULL,
                    updated_at INTEGER NOT NULL,
                    PRIMARY KEY (key, topic)
                )
            ''')
            cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_records_topic
                ON records(topic)
            ''')
            conn.commit()

    def health_check(self) -> bool:
        """Check that the records table exists."""
        try:
            with self.get_db() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='records'")
                return cursor.fetchone() is not None
        except sqlite3.Error:
            return False

    def get(self, key: str, topic: str) -> Optional[Record]:
        with self.get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT key, topic, content, created_at, updated_at FROM records WHERE key = ? AND topic = ?",
                (key, topic)
            )
            row = cursor.fetchone()
            return Record(*row) if row else None

    def put(self, record: Record) -> None:
        with self.get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO records (key, topic, content, created_at, updated_at) VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(key, topic) DO UPDATE SET
                    content = excluded.content,
                    created_at = excluded.created_at,
                    updated_at = excluded.updated_at
            ''', (record.key, record.topic, record.content, record.created_at, record.updated_at))
            conn.commit()

    def compare_and_put(self, record: Record, expected_updated_at: Optional[int]) -> bool:
        with self.get_db() as conn:
            cursor = conn.cursor()
            if expected_updated_at is None:
                cursor.execute(
                    "INSERT OR IGNORE INTO records (key, topic, content, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                    (record.key, record.topic, record.content, record.created_at, record.updated_at)
                )
            else:
                cursor.execute(
                    "UPDATE records SET content = ?, created_at = ?, updated_at = ? "
                    "WHERE key = ? AND topic = ? AND updated_at = ?",
                    (record.content, record.created_at, record.updated_at,
                     record.key, record.topic, expected_updated_at)
                )
            conn.commit()
            return cursor.rowcount == 1

    def delete(self, key: str, topic: str) -> bool:
        with self.get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM records WHERE key = ? AND topic = ?", (key, topic))
            conn.commit()
            return cursor.rowcount > 0

    def count(self) -> int:
        with self.get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM records")
            return cursor.fetchone()[0]

    def list_records(self, topic: Optional[str] = None, limit: Optional[int] = None) -> List[Record]:
        query = "SELECT key, topic, content, created_at, updated_at FROM records"
        params: list = []
        if topic is not None:
            query += " WHERE topic = ?"
            params.append(topic)
        query += " ORDER BY topic, key"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self.get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [Record(*row) for row in cursor.fetchall()]


class InMemoryRecordStore(IRecordStore):
    """Dict-backed store guarded by a single lock."""

    def __init__(self):
        self._records: Dict[Tuple[str, str], Record] = {}
        self._lock = threading.Lock()

    def get(self, key: str, topic: str) -> Optional[Record]:
        with self._lock:
            return self._records.get((key, topic))

    def put(self, record: Record) -> None:
        with self._lock:
            self._records[record.composite_key] = record

    def compare_and_put(self, record: Record, expected_updated_at: Optional[int]) -> bool:
        with self._lock:
            current = self._records.get(record.composite_key)
            if expected_updated_at is None:
                if current is not None:
                    return False
            elif current is None or current.updated_at != expected_updated_at:
                return False
            self._records[record.composite_key] = record
            return True

    def delete(self, key: str, topic: str) -> bool:
        with self._lock:
            return self._records.pop((key, topic), None) is not None

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def list_records(self, topic: Optional[str] = None, limit: Optional[int] = None) -> List[Record]:
        with self._lock:
            records = sorted(self._records.values(), key=lambda r: (r.topic, r.key))
        if topic is not None:
            records = [r for r in records if r.topic == topic]
        return records[:limit] if limit is not None else records
