"""
Request and response models for the record store HTTP API.
"""

from pydantic import BaseModel, field_validator
from typing import Optional, List, Dict, Any

from ..core.schema import Record


class AddRecordRequest(BaseModel):
    key: str
    content: str
    # Accepted for wire compatibility; live writes always stamp server time
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    @field_validator('key')
    @classmethod
    def key_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('key cannot be empty')
        return v


class RecordResponse(BaseModel):
    key: str
    topic: str
    content: str
    created_at: int
    updated_at: int

    @classmethod
    def from_record(cls, record: Record) -> "RecordResponse":
        return cls(
            key=record.key,
            topic=record.topic,
            content=record.content,
            created_at=record.created_at,
            updated_at=record.updated_at
        )


class AddRecordResponse(BaseModel):
    status: str
    action: str
    indexed: bool
    record: RecordResponse


class SearchResponse(BaseModel):
    results: List[RecordResponse]
    limit: int
    offset: int


class HealthResponse(BaseModel):
    status: str
    version: str
    db_health: bool
    record_count: int
    log_pending: int
    log_write_failures: int
    replay: Optional[Dict[str, Any]] = None
    index_rebuild: Optional[Dict[str, int]] = None
