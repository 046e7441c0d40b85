"""
Startup replay of the append log into the store and index.

The calling thread scans the log into a bounded queue; a fixed pool of worker
threads decodes each line and hands it to Reconciler.apply(replay=True), the
same path live writes take. Workers may apply lines for one key out of file
order; the reconciler's timestamp guard makes the final state the last write
regardless.
"""

import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Dict

from . import codec
from .append_log import AppendLog
from .errors import CodecError, IndexWriteFailure, ReplayAborted, StoreWriteFailure
from .reconciler import Reconciler
from ..util.logging import logger

_STOP = object()


@dataclass
class ReplayResult:
    """Counters for one replay pass."""

    applied: int = 0         # lines the reconciler accepted, stale skips included
    failed: int = 0          # lines that could not be decoded or stored
    skipped: int = 0         # stale lines ignored by the timestamp guard
    index_failures: int = 0  # stored but not indexed
    lines: int = 0
    duration_ms: float = 0.0
    failures_by_kind: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "applied": self.applied,
            "failed": self.failed,
            "skipped": self.skipped,
            "index_failures": self.index_failures,
            "lines": self.lines,
            "duration_ms": self.duration_ms,
            "failures_by_kind": dict(self.failures_by_kind),
        }


class ReplayEngine:
    """Bounded worker pool that re-applies every log line."""

    def __init__(self, reconciler: Reconciler, worker_count: int = 8, queue_size: int = 256):
        if worker_count < 1:
            raise ValueError(f"worker_count must be >= 1: {worker_count}")
        if queue_size < 1:
            raise ValueError(f"queue_size must be >= 1: {queue_size}")

        self.reconciler = reconciler
        self.worker_count = worker_count
        self.queue_size = queue_size

    def replay(self, log: AppendLog) -> ReplayResult:
        """Apply every line of `log`; blocks until all workers have drained.

        Corrupt lines are counted and skipped. Raises ReplayAborted (carrying the
        partial result) only if the log itself cannot be read; records already
        applied stay applied.
        """
        result = ReplayResult()
        counters_lock = threading.Lock()
        work: "queue.Queue" = queue.Queue(maxsize=self.queue_size)

        workers = [
            threading.Thread(
                target=self._work, args=(work, result, counters_lock),
                name=f"replay-worker-{i}", daemon=True
            )
            for i in range(self.worker_count)
        ]
        for worker in workers:
            worker.start()

        start_time = time.monotonic()
        read_error = None
        try:
            for line_number, line in log.stream():
                result.lines += 1
                work.put((line_number, line))
        except OSError as e:
            read_error = e
        finally:
            for _ in workers:
                work.put(_STOP)
            for worker in workers:
                worker.join()

        result.duration_ms = round((time.monotonic() - start_time) * 1000, 2)

        if read_error is not None:
            logger.log_replay_summary(log.path, result.applied, result.failed, {
                "aborted": True,
                "error": str(read_error)[:100]
            })
            raise ReplayAborted(f"cannot read append log {log.path}: {read_error}", result=result) from read_error

        logger.log_replay_summary(log.path, result.applied, result.failed, {
            "skipped": result.skipped,
            "index_failures": result.index_failures,
            "workers": self.worker_count,
            "duration_ms": result.duration_ms
        })
        return result

    def _work(self, work: "queue.Queue", result: ReplayResult, counters_lock: threading.Lock):
        while True:
            item = work.get()
            if item is _STOP:
                return

            line_number, line = item
            try:
                record = codec.decode(line)
            except CodecError as e:
                self._record_failure(result, counters_lock, line_number, e.kind, e)
                continue

            try:
                outcome = self.reconciler.apply(record, replay=True)
            except IndexWriteFailure:
                with counters_lock:
                    result.applied += 1
                    result.index_failures += 1
                continue
            except StoreWriteFailure as e:
                self._record_failure(result, counters_lock, line_number, "store_write_failed", e)
                continue
            except Exception as e:
                # Workers outlive any single bad line
                self._record_failure(result, counters_lock, line_number, "apply_error", e)
                continue

            with counters_lock:
                result.applied += 1
                if outcome.action == "skipped":
                    result.skipped += 1

    @staticmethod
    def _record_failure(result: ReplayResult, counters_lock: threading.Lock, line_number: int, kind: str, error: Exception):
        with counters_lock:
            result.failed += 1
            result.failures_by_kind[kind] = result.failures_by_kind.get(kind, 0) + 1
        logger.log_replay_line_failure(line_number, kind, error)
