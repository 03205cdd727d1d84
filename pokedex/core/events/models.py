"""
Event Models

The envelope published to the channel for each outbox record.
"""

from datetime import datetime
from typing import Any, Dict
from uuid import UUID

from pydantic import BaseModel, Field


class EventEnvelope(BaseModel):
    """
    Message body delivered to consumers.

    id is the outbox record id and doubles as the idempotency key, so a
    retried publish carries the same id as the first attempt.
    """

    id: UUID
    event_kind: str
    aggregate_type: str
    aggregate_id: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    attempt: int = 1

    @classmethod
    def from_record(cls, record) -> "EventEnvelope":
        return cls(
            id=record.id,
            event_kind=record.event_kind,
            aggregate_type=record.aggregate_type,
            aggregate_id=record.aggregate_id,
            payload=record.payload,
            created_at=record.created_at,
            attempt=record.attempts,
        )

    def to_bytes(self) -> bytes:
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "EventEnvelope":
        return cls.model_validate_json(data)
