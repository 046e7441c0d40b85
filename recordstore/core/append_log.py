"""
Append-only, newline-framed log of encoded records.

The log is a secondary rebuild source, not the commit point: the store write
commits a record, and the log line follows asynchronously through a bounded
queue drained by one writer thread. A crash after the store write but before
the writer reaches the file loses that line from the log (not from the store).
"""

import os
import queue
import threading
from pathlib import Path
from typing import Iterator, Optional, Tuple, Union

from .errors import WriteFailure
from ..util.logging import logger

_STOP = object()


class AppendLog:
    """Append-only log file with a single background writer.

    Thread-safe: `append` serialises writers with a mutex, and `submit` feeds
    the writer thread, so line framing is never interleaved and file order
    equals call order.
    """

    def __init__(self, path: str, queue_size: int = 1024):
        if queue_size < 1:
            raise ValueError(f"queue_size must be >= 1: {queue_size}")

        self.path = str(path)
        self._queue: "queue.Queue" = queue.Queue(maxsize=queue_size)
        self._lock = threading.Lock()
        self._start_lock = threading.Lock()
        self._file = None
        self._writer: Optional[threading.Thread] = None
        self._closed = False

        self.lines_written = 0
        self.write_failures = 0

    def __enter__(self) -> "AppendLog":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _open(self):
        if self._file is None:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.path, "ab")

    def append(self, line: Union[bytes, str]) -> None:
        """Write one line synchronously. Raises WriteFailure on I/O error."""
        if isinstance(line, str):
            line = line.encode("utf-8")
        if b"\n" in line or b"\r" in line:
            raise ValueError("log lines must not contain line separators")

        with self._lock:
            if self._closed and self._writer is None:
                raise WriteFailure(f"append log {self.path} is closed")
            try:
                self._open()
                self._file.write(line + b"\n")
                self._file.flush()
            except OSError as e:
                raise WriteFailure(f"failed to write to {self.path}: {e}") from e
            self.lines_written += 1

    def start(self) -> None:
        """Start the background writer thread (idempotent)."""
        with self._start_lock:
            if self._closed:
                raise WriteFailure(f"append log {self.path} is closed")
            self._ensure_writer()

    def _ensure_writer(self):
        # Caller holds _start_lock
        if self._writer is not None and self._writer.is_alive():
            return
        self._writer = threading.Thread(target=self._drain, name="append-log-writer", daemon=True)
        self._writer.start()

    def submit(self, line: Union[bytes, str]) -> None:
        """Queue a line for the writer thread; returns without waiting for the write.

        Blocks only while the bounded queue is full. Raises WriteFailure once
        close() has begun, so no line is ever queued behind the stop marker.
        """
        with self._start_lock:
            if self._closed:
                raise WriteFailure(f"append log {self.path} is closed")
            self._ensure_writer()
            self._queue.put(line)

    def _drain(self):
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                try:
                    self.append(item)
                except (WriteFailure, ValueError) as e:
                    self.write_failures += 1
                    logger.log_log_write_failure(self.path, e)
            finally:
                self._queue.task_done()

    def pending(self) -> int:
        """Number of submitted lines not yet written."""
        return self._queue.qsize()

    def flush(self) -> None:
        """Block until every submitted line has been written (or failed)."""
        if self._writer is not None:
            self._queue.join()

    def close(self) -> None:
        """Drain queued lines, stop the writer and release the file handle."""
        with self._start_lock:
            if self._closed:
                return
            self._closed = True

        if self._writer is not None:
            self._queue.put(_STOP)
            self._writer.join()
            self._writer = None

        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None

    def stream(self) -> Iterator[Tuple[int, bytes]]:
        """Yield (line_number, line) for every non-blank line, lazily.

        Each call re-reads the file from the start. A missing file yields
        nothing; other I/O errors propagate to the caller.
        """
        if not os.path.exists(self.path):
            return

        with open(self.path, "rb") as f:
            for line_number, raw in enumerate(f, start=1):
                line = raw.rstrip(b"\r\n")
                if not line.strip():
                    continue
                yield line_number, line
