"""
Transactional outbox for catalog notifications.

Usage:
    from pokedex.core.outbox import OutboxRecorder, NotificationDispatcher

    async with unit_of_work(db) as session:
        user = await session.persist(AccountUser(name="Red", email="red@x.com"))
        # Atomic with the user insert
        await OutboxRecorder(session).record_pending(
            EventKind.ACCOUNT_CREATED,
            {"user_id": user.id},
            aggregate_type="AccountUser",
            aggregate_id=user.id,
        )

    await NotificationDispatcher(db, channel).drain_pending()
"""

from .models import OutboxRecord, OutboxStatus
from .writer import OutboxRecorder
from .dispatcher import NotificationDispatcher, RETRY_INTERVALS, calculate_next_attempt
from .processor import (
    OutboxProcessor,
    start_outbox_processor,
    stop_outbox_processor,
    get_outbox_processor,
)

__all__ = [
    "OutboxRecord",
    "OutboxStatus",
    "OutboxRecorder",
    "NotificationDispatcher",
    "RETRY_INTERVALS",
    "calculate_next_attempt",
    "OutboxProcessor",
    "start_outbox_processor",
    "stop_outbox_processor",
    "get_outbox_processor",
]
