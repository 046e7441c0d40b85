"""
Structured operation logging for the record store.
Every write, index failure and replay outcome goes through the global `logger`.
"""

import logging
from typing import Any, Dict, Optional


class StructuredLogger:
    """Structured logger for record, append-log and replay operations."""

    def __init__(self, name: str = "recordstore"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def set_debug(self, enabled: bool) -> None:
        """Switch between DEBUG and INFO verbosity."""
        self.logger.setLevel(logging.DEBUG if enabled else logging.INFO)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(level, message)

    def log_record_operation(self, operation: str, key: str, topic: str, content: str = None, status: str = "success"):
        """Log a record write (created, updated, skipped, deleted)."""
        details = {"key": key, "topic": topic}
        if content is not None:
            details["content"] = content[:50] + "..." if len(content) > 50 else content

        self.log_operation(f"record.{operation}", status, details)

    def log_index_failure(self, doc_id: str, error: Exception):
        """Log an index write that failed after the store commit."""
        self.log_operation("index.write", "failed", {"doc_id": doc_id, "error": str(error)[:100]}, level=logging.WARNING)

    def log_log_write_failure(self, path: str, error: Exception, dropped: int = 1):
        """Log an append-log write that could not reach the file."""
        self.log_operation("append_log.write", "failed", {
            "path": path,
            "error": str(error)[:100],
            "dropped": dropped
        }, level=logging.ERROR)

    def log_replay_line_failure(self, line_number: int, kind: str, error: Exception = None):
        """Log a single log line that replay had to skip."""
        details = {"line": line_number, "kind": kind}
        if error is not None:
            details["error"] = str(error)[:100]

        self.log_operation("replay.line", "skipped", details, level=logging.WARNING)

    def log_replay_summary(self, path: str, applied: int, failed: int, details: Optional[Dict[str, Any]] = None):
        """Log the outcome of a full replay pass."""
        log_details = {"path": path, "applied": applied, "failed": failed}
        if details:
            log_details.update(details)

        status = "success" if failed == 0 else "partial"
        self.log_operation("replay", status, log_details)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()
