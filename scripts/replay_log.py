#!/usr/bin/env python3
"""
Offline replay utility.
Rebuilds the record store and search index from the append log without
starting the API server.
"""

import sys
import argparse
from pathlib import Path

# Add the parent directory to sys.path to import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from recordstore.core.append_log import AppendLog
from recordstore.core.config import Settings, get_record_store, get_search_index
from recordstore.core.errors import ReplayAborted
from recordstore.core.reconciler import Reconciler
from recordstore.core.replay import ReplayEngine


def main(argv=None):
    """Replay the append log into the configured store and index."""
    settings = Settings.from_env()

    parser = argparse.ArgumentParser(description='Replay the append log into the record store')
    parser.add_argument('--db', default=settings.db_path, help='Path to SQLite database file')
    parser.add_argument('--logfile', default=settings.log_path, help='Path to append log file')
    parser.add_argument('--workers', type=int, default=settings.replay_workers, help='Replay worker threads')
    args = parser.parse_args(argv)

    settings.db_path = args.db
    settings.log_path = args.logfile

    if not Path(settings.log_path).exists():
        print(f"ERROR: Append log not found: {settings.log_path}")
        sys.exit(1)

    store = get_record_store(settings)
    index = get_search_index(settings)
    engine = ReplayEngine(Reconciler(store, index), worker_count=args.workers,
                          queue_size=settings.replay_queue_size)

    print(f"Replaying {settings.log_path} with {args.workers} workers...")

    log = AppendLog(settings.log_path)
    try:
        result = engine.replay(log)
    except ReplayAborted as e:
        print(f"ERROR: Replay aborted: {e}")
        if e.result is not None:
            print(f"  applied before abort: {e.result.applied}")
        sys.exit(1)
    finally:
        log.close()

    print(f"✓ Read {result.lines} log lines in {result.duration_ms}ms")
    print(f"✓ Applied {result.applied} records ({result.skipped} stale)")
    if result.failed:
        print(f"WARNING: {result.failed} lines failed: {result.failures_by_kind}")
    if result.index_failures:
        print(f"WARNING: {result.index_failures} records stored but not indexed")
    print(f"Store now holds {store.count()} records")
    print("Replay complete!")


if __name__ == "__main__":
    main()
