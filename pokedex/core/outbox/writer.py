"""
Outbox Recorder

Stages a notification in the outbox table inside the same transaction
as the business write that triggers it. If that transaction rolls back,
the staged record is gone with it. Nothing here touches the channel.
"""

import logging
from typing import Any, Dict, Union

from ..database.session import Session
from ..events.taxonomy import EventKind, validate_event_kind
from ..observability.metrics import record_counter
from .models import OutboxRecord, OutboxStatus

logger = logging.getLogger(__name__)


class OutboxRecorder:
    """
    Writes outbox records through a unit of work.

    Usage:
        async with unit_of_work(db) as session:
            user = await session.persist(AccountUser(name=name, email=email))
            await OutboxRecorder(session).record_pending(
                EventKind.ACCOUNT_CREATED,
                {"user_id": user.id},
                aggregate_type="AccountUser",
                aggregate_id=user.id,
            )
        # Both rows commit together or neither does
    """

    def __init__(self, session: Session):
        self._session = session

    async def record_pending(
        self,
        event_kind: Union[EventKind, str],
        payload: Dict[str, Any],
        *,
        aggregate_type: str,
        aggregate_id: Any,
    ) -> OutboxRecord:
        """
        Stage an event for delivery.

        Args:
            event_kind: Kind from the event taxonomy
            payload: JSON-serializable body referencing the aggregate
            aggregate_type: Type of the triggering aggregate
            aggregate_id: Id of the triggering aggregate

        Returns:
            The staged OutboxRecord (status pending)

        Raises:
            RuntimeError: the session's unit of work has already ended
        """
        if not self._session.active:
            raise RuntimeError("record_pending must run inside an open unit of work")

        kind = event_kind.value if isinstance(event_kind, EventKind) else event_kind
        if not validate_event_kind(kind):
            logger.warning(f"Unknown event kind: {kind} - recording anyway")

        record = OutboxRecord(
            event_kind=kind,
            aggregate_type=aggregate_type,
            aggregate_id=str(aggregate_id),
            payload=payload,
        )

        await self._session.tx.execute(
            """
            INSERT INTO outbox (
                id, event_kind, aggregate_type, aggregate_id, payload,
                status, attempts, created_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            """,
            record.id,
            record.event_kind,
            record.aggregate_type,
            record.aggregate_id,
            record.payload,
            OutboxStatus.PENDING.value,
            record.attempts,
            record.created_at
        )
        record_counter("outbox_recorded_total", attributes={"event_kind": kind})

        logger.debug(
            "Staged outbox record: id=%s kind=%s aggregate=%s:%s",
            record.id, record.event_kind, record.aggregate_type, record.aggregate_id
        )
        return record
