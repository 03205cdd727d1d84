"""
In-Memory Channel

Process-local transport for development and tests. Deduplicates on the
idempotency key, the way a broker with deduplication would.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional
from uuid import uuid4

from .base import Channel, ChannelBackend, DeliveryReceipt

logger = logging.getLogger(__name__)


@dataclass
class ChannelMessage:
    """A message accepted by the in-memory channel."""

    message_id: str
    destination: str
    payload: bytes
    idempotency_key: str
    headers: Dict[str, str] = field(default_factory=dict)
    accepted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Subscriber = Callable[[ChannelMessage], Awaitable[None]]


class InMemoryChannel(Channel):
    """
    Channel that keeps accepted messages in memory.

    Usage:
        channel = InMemoryChannel()
        await channel.publish("UserCreatedQueue", b"...", idempotency_key=key)
        channel.messages("UserCreatedQueue")  # -> [ChannelMessage]
    """

    def __init__(self):
        self._messages: Dict[str, List[ChannelMessage]] = defaultdict(list)
        self._receipts: Dict[str, DeliveryReceipt] = {}
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)
        self.publish_calls = 0

    def subscribe(self, destination: str, handler: Subscriber) -> None:
        """Register a coroutine called once per newly accepted message."""
        self._subscribers[destination].append(handler)

    @property
    def backend_type(self) -> ChannelBackend:
        return ChannelBackend.MEMORY

    async def publish(
        self,
        destination: str,
        payload: bytes,
        *,
        idempotency_key: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> DeliveryReceipt:
        self.publish_calls += 1

        existing = self._receipts.get(idempotency_key)
        if existing is not None:
            logger.debug(f"Duplicate publish ignored: {idempotency_key}")
            return replace(existing, duplicate=True)

        message = ChannelMessage(
            message_id=str(uuid4()),
            destination=destination,
            payload=payload,
            idempotency_key=idempotency_key,
            headers=dict(headers or {}),
        )
        receipt = DeliveryReceipt(
            destination=destination,
            idempotency_key=idempotency_key,
            message_id=message.message_id,
            accepted_at=message.accepted_at,
        )
        # Accept and remember the key before any await
        self._receipts[idempotency_key] = receipt
        self._messages[destination].append(message)

        for subscriber in self._subscribers.get(destination, []):
            try:
                await subscriber(message)
            except Exception as e:
                # Already accepted; subscriber errors do not fail the publish
                logger.error(f"Subscriber failed for {idempotency_key}: {e}", exc_info=True)
        return receipt

    def messages(self, destination: str) -> List[ChannelMessage]:
        """Messages accepted for a destination, in publish order."""
        return list(self._messages.get(destination, []))

    def all_messages(self) -> List[ChannelMessage]:
        return [m for messages in self._messages.values() for m in messages]

    def clear(self) -> None:
        self._messages.clear()
        self._receipts.clear()
        self.publish_calls = 0
