"""
Runtime configuration for the record store, read from the environment.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()

# Storage paths
DB_PATH = os.getenv("DB_PATH", "./data/records.db")
LOG_PATH = os.getenv("LOG_PATH", "./data/store.log")

# Debug flag (enables /docs and debug logging)
DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Replay of the append log at startup
IMPORT_LOG = os.getenv("IMPORT_LOG", "false").lower() == "true"
REPLAY_WORKERS = int(os.getenv("REPLAY_WORKERS", "8"))
REPLAY_QUEUE_SIZE = int(os.getenv("REPLAY_QUEUE_SIZE", "256"))

# Background writer queue for the append log
LOG_QUEUE_SIZE = int(os.getenv("LOG_QUEUE_SIZE", "1024"))

# Backends
STORE_PROVIDER = os.getenv("STORE_PROVIDER", "sqlite")  # sqlite|memory
INDEX_PROVIDER = os.getenv("INDEX_PROVIDER", "memory")  # memory|sqlite

# API key checked on every write/read endpoint
API_KEY = os.getenv("API_KEY", "demo")

# Search pagination
SEARCH_DEFAULT_LIMIT = int(os.getenv("SEARCH_DEFAULT_LIMIT", "20"))
SEARCH_MAX_LIMIT = int(os.getenv("SEARCH_MAX_LIMIT", "100"))

DEFAULT_TOPIC = "default"

VERSION = "1.0.0"


@dataclass
class Settings:
    """Explicit settings object handed to the app factory and scripts."""

    db_path: str = DB_PATH
    log_path: str = LOG_PATH
    import_log: bool = IMPORT_LOG
    replay_workers: int = REPLAY_WORKERS
    replay_queue_size: int = REPLAY_QUEUE_SIZE
    log_queue_size: int = LOG_QUEUE_SIZE
    store_provider: str = STORE_PROVIDER
    index_provider: str = INDEX_PROVIDER
    api_key: str = API_KEY
    debug: bool = DEBUG
    search_default_limit: int = SEARCH_DEFAULT_LIMIT
    search_max_limit: int = SEARCH_MAX_LIMIT

    @classmethod
    def from_env(cls) -> "Settings":
        """Re-read the environment; module constants are fixed at import time."""
        return cls(
            db_path=os.getenv("DB_PATH", "./data/records.db"),
            log_path=os.getenv("LOG_PATH", "./data/store.log"),
            import_log=os.getenv("IMPORT_LOG", "false").lower() == "true",
            replay_workers=int(os.getenv("REPLAY_WORKERS", "8")),
            replay_queue_size=int(os.getenv("REPLAY_QUEUE_SIZE", "256")),
            log_queue_size=int(os.getenv("LOG_QUEUE_SIZE", "1024")),
            store_provider=os.getenv("STORE_PROVIDER", "sqlite"),
            index_provider=os.getenv("INDEX_PROVIDER", "memory"),
            api_key=os.getenv("API_KEY", "demo"),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            search_default_limit=int(os.getenv("SEARCH_DEFAULT_LIMIT", "20")),
            search_max_limit=int(os.getenv("SEARCH_MAX_LIMIT", "100")),
        )


def get_record_store(settings: Settings):
    """Get configured record store implementation."""
    if settings.store_provider == "memory":
        from .store import InMemoryRecordStore
        return InMemoryRecordStore()

    from .store import SQLiteRecordStore
    ensure_parent_directory(settings.db_path)
    return SQLiteRecordStore(settings.db_path)


def get_search_index(settings: Settings):
    """Get configured search index implementation."""
    if settings.index_provider == "sqlite":
        from ..search.sqlite_index import SQLiteSearchIndex
        ensure_parent_directory(settings.db_path)
        return SQLiteSearchIndex(settings.db_path)

    from ..search.index import SimpleInMemorySearchIndex
    return SimpleInMemorySearchIndex()


def ensure_parent_directory(path: str):
    """Ensure the directory holding `path` exists."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def validate_config(settings: Settings) -> List[str]:
    """Validate configuration and return any issues."""
    issues = []

    if settings.store_provider not in ["sqlite", "memory"]:
        issues.append(f"Invalid STORE_PROVIDER: {settings.store_provider}")

    if settings.index_provider not in ["memory", "sqlite"]:
        issues.append(f"Invalid INDEX_PROVIDER: {settings.index_provider}")

    if settings.replay_workers < 1:
        issues.append("REPLAY_WORKERS must be >= 1")

    if settings.replay_queue_size < 1:
        issues.append("REPLAY_QUEUE_SIZE must be >= 1")

    if settings.log_queue_size < 1:
        issues.append("LOG_QUEUE_SIZE must be >= 1")

    if not settings.api_key:
        issues.append("API_KEY must not be empty")

    if settings.search_default_limit < 1 or settings.search_default_limit > settings.search_max_limit:
        issues.append("SEARCH_DEFAULT_LIMIT must be between 1 and SEARCH_MAX_LIMIT")

    return issues
