"""
Outbox Models
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


class OutboxStatus(str, Enum):
    """Status of an outbox record."""
    PENDING = "pending"
    PROCESSING = "processing"  # Claimed by one dispatcher
    DELIVERED = "delivered"


class OutboxRecord(BaseModel):
    """A staged notification in the outbox table."""

    id: UUID = Field(default_factory=uuid4)
    event_kind: str
    aggregate_type: str
    aggregate_id: str
    payload: Dict[str, Any] = Field(default_factory=dict)

    status: OutboxStatus = OutboxStatus.PENDING
    attempts: int = 0

    created_at: datetime = Field(default_factory=_utcnow)
    claimed_at: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None
    next_attempt_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    error_message: Optional[str] = None

    @property
    def idempotency_key(self) -> str:
        return str(self.id)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "OutboxRecord":
        data = dict(row)
        if isinstance(data.get("payload"), (str, bytes)):
            data["payload"] = json.loads(data["payload"])
        return cls.model_validate(data)


OUTBOX_COLUMNS = (
    "id, event_kind, aggregate_type, aggregate_id, payload, status, attempts, "
    "created_at, claimed_at, last_attempt_at, next_attempt_at, delivered_at, error_message"
)
