"""
Inbox Guard

Consumer-side deduplication. The dispatcher delivers at least once, so a
consumer may see the same envelope twice; the inbox table records which
(event, consumer) pairs were already handled.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Union
from uuid import UUID

from ..database.adapter import DatabaseAdapter, get_database

logger = logging.getLogger(__name__)

EventId = Union[UUID, str]


def _as_uuid(event_id: EventId) -> UUID:
    return event_id if isinstance(event_id, UUID) else UUID(str(event_id))


async def _claim(db: DatabaseAdapter, event_id: UUID, consumer_id: str) -> bool:
    inserted = await db.execute(
        """
        INSERT INTO inbox (event_id, consumer_id, processed_at)
        VALUES ($1, $2, $3)
        ON CONFLICT (event_id, consumer_id) DO NOTHING
        """,
        event_id,
        consumer_id,
        datetime.now(timezone.utc)
    )
    return inserted == 1


class InboxGuard:
    """
    Guards against duplicate event processing.

    Usage:
        async with InboxGuard(db, envelope.id, "welcome-mailer") as guard:
            if guard.should_process:
                await send_welcome(envelope)
            else:
                logger.info("Event already processed, skipping")

    If processing fails (exception raised), the inbox entry is removed
    to allow retry.
    """

    def __init__(
        self,
        db: Optional[DatabaseAdapter],
        event_id: EventId,
        consumer_id: str,
    ):
        self.event_id = _as_uuid(event_id)
        self.consumer_id = consumer_id
        self.should_process = False
        self._db = db

    async def __aenter__(self):
        if self._db is None:
            self._db = await get_database()

        self.should_process = await _claim(self._db, self.event_id, self.consumer_id)
        if self.should_process:
            logger.debug(
                f"InboxGuard: event {self.event_id} marked for processing by {self.consumer_id}"
            )
        else:
            logger.debug(
                f"InboxGuard: event {self.event_id} already processed by {self.consumer_id}"
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None and self.should_process:
            # Processing failed, remove from inbox to allow retry
            await self._db.execute(
                """
                DELETE FROM inbox
                WHERE event_id = $1 AND consumer_id = $2
                """,
                self.event_id,
                self.consumer_id
            )
            logger.warning(
                f"InboxGuard: removed entry for failed processing of event {self.event_id}"
            )
        return False


async def is_processed(
    event_id: EventId,
    consumer_id: str,
    db: Optional[DatabaseAdapter] = None,
) -> bool:
    """Check if an event has been processed by a consumer."""
    db = db or await get_database()

    result = await db.fetchrow(
        """
        SELECT 1 FROM inbox
        WHERE event_id = $1 AND consumer_id = $2
        """,
        _as_uuid(event_id),
        consumer_id
    )

    return result is not None


async def mark_processed(
    event_id: EventId,
    consumer_id: str,
    db: Optional[DatabaseAdapter] = None,
) -> bool:
    """
    Mark an event as processed.

    Returns:
        True if marked, False if it was already processed
    """
    db = db or await get_database()
    return await _claim(db, _as_uuid(event_id), consumer_id)


async def remove_processed(
    event_id: EventId,
    consumer_id: str,
    db: Optional[DatabaseAdapter] = None,
) -> bool:
    """
    Remove a processed event record (for retry scenarios).

    Returns:
        True if removed, False if not found
    """
    db = db or await get_database()

    removed = await db.execute(
        """
        DELETE FROM inbox
        WHERE event_id = $1 AND consumer_id = $2
        """,
        _as_uuid(event_id),
        consumer_id
    )
    return removed > 0
