"""
Repair pass: rebuild the search index from the canonical record store.
"""

from typing import Tuple

from ..core.store import IRecordStore
from ..util.logging import logger
from .index import ISearchIndex


def rebuild_index(store: IRecordStore, index: ISearchIndex, clear: bool = True) -> Tuple[int, int]:
    """Reindex every stored record. Returns (indexed, failed)."""
    if clear:
        index.clear()

    indexed = 0
    failed = 0
    for record in store.list_records():
        try:
            index.index(record.doc_id, record.topic, record.content)
            indexed += 1
        except Exception as e:
            # One bad document should not stop the repair pass
            failed += 1
            logger.log_index_failure(record.doc_id, e)

    logger.log_operation("index.rebuild", "success" if failed == 0 else "partial", {
        "indexed": indexed,
        "failed": failed
    })
    return indexed, failed
