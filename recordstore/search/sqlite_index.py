"""
SQLite table-backed search index using escaped LIKE substring matching.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator, List

from .index import ISearchIndex
from .types import SearchHit


def escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SQLiteSearchIndex(ISearchIndex):
    """Substring search over a `search_index` table. Ranks by match position."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.init_db()

    @contextmanager
    def get_db(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self.db_path, timeout=30)
        try:
            yield conn
        finally:
            conn.close()

    def init_db(self):
        with self.get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS search_index (
                    doc_id TEXT PRIMARY KEY,
                    topic TEXT NOT NULL,
                    content TEXT NOT NULL
                )
            ''')
            cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_search_index_topic
                ON search_index(topic)
            ''')
            conn.commit()

    def index(self, doc_id: str, topic: str, content: str) -> None:
        with self.get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT OR REPLACE INTO search_index (doc_id, topic, content) VALUES (?, ?, ?)",
                (doc_id, topic, content)
            )
            conn.commit()

    def search(self, topic: str, query: str, limit: int = 20, offset: int = 0) -> List[SearchHit]:
        if not query:
            return []

        with self.get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT doc_id, instr(lower(content), lower(?)) AS pos, length(content)
                FROM search_index
                WHERE topic = ? AND content LIKE ? ESCAPE '\\'
                ORDER BY pos ASC, doc_id ASC
                LIMIT ? OFFSET ?
            ''', (query, topic, f"%{escape_like(query)}%", limit, offset))
            rows = cursor.fetchall()

        return [
            SearchHit(doc_id=doc_id, score=2.0 - (max(pos, 1) - 1) / max(length, 1))
            for doc_id, pos, length in rows
        ]

    def delete(self, doc_id: str) -> None:
        with self.get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM search_index WHERE doc_id = ?", (doc_id,))
            conn.commit()

    def clear(self) -> None:
        with self.get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM search_index")
            conn.commit()

    def count(self) -> int:
        with self.get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM search_index")
            return cursor.fetchone()[0]
