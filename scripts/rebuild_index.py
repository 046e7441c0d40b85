#!/usr/bin/env python3
"""
Index Rebuild Utility
Rebuilds the search index from the canonical SQLite record store after index
write failures or a lost index.
"""

import sys
from pathlib import Path

# Add the parent directory to sys.path to import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from recordstore.core.config import Settings, get_record_store, get_search_index
from recordstore.search.rebuild import rebuild_index


def main():
    """Rebuild search index from the record store."""
    settings = Settings.from_env()

    if settings.index_provider != "sqlite":
        print("ERROR: Only a persistent index can be rebuilt offline. "
              "The in-memory index is rebuilt from the store at every server start; "
              "set INDEX_PROVIDER=sqlite to rebuild a persistent one")
        sys.exit(1)

    print("Starting search index rebuild...")

    store = get_record_store(settings)
    index = get_search_index(settings)

    if not store or not index:
        print("ERROR: Record store or search index not available")
        sys.exit(1)

    total = store.count()
    print(f"Found {total} records in canonical store")

    if total == 0:
        index.clear()
        print("No records to index. Exiting.")
        return

    indexed, failed = rebuild_index(store, index)

    print(f"✓ Successfully rebuilt index with {indexed} documents")
    if failed:
        print(f"WARNING: {failed} records could not be indexed")

    print("Index rebuild complete!")


if __name__ == "__main__":
    main()
