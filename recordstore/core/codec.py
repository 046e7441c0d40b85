"""
Log line codec: Record -> JSON -> gzip -> base64, one text-safe line per record.

Each decode layer raises its own error so replay can report which one failed.
"""

import base64
import binascii
import gzip
import json
import zlib
from typing import Union

from pydantic import BaseModel, ValidationError, field_validator

from .errors import CorruptEntry, DecompressionFailed, MalformedRecord
from .schema import Record


class LogEntry(BaseModel):
    """Structured layer of a log line. Field names match the HTTP wire format."""

    key: str
    topic: str
    content: str
    updated_at: int = 0
    created_at: int = 0

    @field_validator('key')
    @classmethod
    def key_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('key cannot be empty')
        return v

    @field_validator('updated_at', 'created_at')
    @classmethod
    def timestamp_must_not_be_negative(cls, v):
        if v < 0:
            raise ValueError('timestamp cannot be negative')
        return v


def encode(record: Record) -> bytes:
    """Encode a record as a single base64 line (no trailing newline)."""
    payload = json.dumps({
        "key": record.key,
        "topic": record.topic,
        "content": record.content,
        "updated_at": record.updated_at,
        "created_at": record.created_at,
    }, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    # mtime=0 keeps the output deterministic for identical records
    compressed = gzip.compress(payload, mtime=0)
    return base64.b64encode(compressed)


def decode(line: Union[bytes, str]) -> Record:
    """Decode one log line back into a Record."""
    if isinstance(line, str):
        line = line.encode("ascii", errors="replace")
    line = line.strip()

    if not line:
        raise CorruptEntry("empty log line")

    try:
        compressed = base64.b64decode(line, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CorruptEntry(f"invalid base64: {e}") from e

    try:
        raw = gzip.decompress(compressed)
    except (OSError, EOFError, zlib.error) as e:
        raise DecompressionFailed(f"invalid gzip stream: {e}") from e

    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedRecord(f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedRecord(f"expected a JSON object, got {type(data).__name__}")

    try:
        entry = LogEntry(**data)
    except ValidationError as e:
        raise MalformedRecord(f"invalid record: {e.error_count()} validation error(s)") from e

    return Record(
        key=entry.key,
        topic=entry.topic,
        content=entry.content,
        created_at=entry.created_at,
        updated_at=entry.updated_at,
    )
