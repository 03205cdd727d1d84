"""
Channel Abstract Base Class

Defines the interface for message transports the outbox publishes to.
Transports are assumed at-least-once; consumers deduplicate on the
idempotency key.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional


class ChannelBackend(str, Enum):
    """Supported channel backend types."""

    MEMORY = "memory"
    HTTP = "http"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DeliveryReceipt:
    """Acknowledgement of an accepted publish."""

    destination: str
    idempotency_key: str
    message_id: str
    duplicate: bool = False
    accepted_at: datetime = field(default_factory=_utcnow)


class Channel(ABC):
    """
    Abstract base class for channel backends.

    Implementations must:
    - return a DeliveryReceipt only once the transport acknowledged
      the message
    - raise TransientChannelFailure for timeouts, unavailability and
      rejections
    - treat a repeated idempotency_key as a duplicate, not a new message
    """

    @property
    @abstractmethod
    def backend_type(self) -> ChannelBackend:
        """Return the channel backend type."""
        ...

    @abstractmethod
    async def publish(
        self,
        destination: str,
        payload: bytes,
        *,
        idempotency_key: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> DeliveryReceipt:
        """
        Publish one message.

        Args:
            destination: Queue or topic name
            payload: Serialized message body
            idempotency_key: Stable key for deduplication across retries
            headers: Optional transport headers

        Returns:
            DeliveryReceipt for the acknowledged message

        Raises:
            TransientChannelFailure: publish was not acknowledged
        """
        ...

    async def close(self) -> None:
        """Release transport resources."""
        return None
