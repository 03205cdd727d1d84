"""
Notification Dispatcher

Drives committed outbox records to the channel.

Per record: pending -> (claim) -> processing -> delivered, or back to
pending with the attempt count raised when the publish fails. The claim
is a compare-and-set on status, so two concurrent drains never publish
the same record in the same claim cycle.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from ..channel.base import Channel
from ..database.adapter import DatabaseAdapter
from ..events.models import EventEnvelope
from ..events.taxonomy import destination_for
from ..exceptions import TransientChannelFailure
from ..observability.metrics import record_counter, record_histogram
from ..observability.tracing import create_span
from .models import OUTBOX_COLUMNS, OutboxRecord, OutboxStatus

logger = logging.getLogger(__name__)

# Retry intervals for exponential backoff (in seconds)
RETRY_INTERVALS = [5, 15, 60, 300, 900]  # 5s, 15s, 1m, 5m, 15m


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def calculate_next_attempt(
    attempts: int,
    intervals: Sequence[float] = RETRY_INTERVALS,
    now: Optional[datetime] = None,
) -> datetime:
    """Calculate next attempt time with exponential backoff."""
    now = now or _utcnow()
    if not intervals:
        return now
    interval_idx = min(max(attempts - 1, 0), len(intervals) - 1)
    return now + timedelta(seconds=intervals[interval_idx])


class NotificationDispatcher:
    """
    Publishes pending outbox records.

    Failures never propagate to whoever wrote the record: the triggering
    write already committed. They show up only as the record staying
    pending with a higher attempt count.
    """

    def __init__(
        self,
        db: DatabaseAdapter,
        channel: Channel,
        *,
        batch_size: int = 100,
        publish_timeout: float = 5.0,
        claim_timeout: float = 60.0,
        retry_intervals: Sequence[float] = RETRY_INTERVALS,
    ):
        if claim_timeout <= publish_timeout:
            raise ValueError("claim_timeout must exceed publish_timeout")
        self._db = db
        self._channel = channel
        self.batch_size = batch_size
        self.publish_timeout = publish_timeout
        self.claim_timeout = claim_timeout
        self.retry_intervals = list(retry_intervals)

    async def drain_pending(self) -> int:
        """
        Attempt delivery of every due pending record, oldest first.

        Also picks up records whose claim went stale (a dispatcher died
        mid-publish).

        Returns:
            Number of records this call claimed and attempted
        """
        now = _utcnow()
        rows = await self._db.fetch(
            f"""
            SELECT {OUTBOX_COLUMNS}
            FROM outbox
            WHERE (status = $1 AND (next_attempt_at IS NULL OR next_attempt_at <= $2))
               OR (status = $3 AND claimed_at < $4)
            ORDER BY created_at ASC, id ASC
            LIMIT $5
            """,
            OutboxStatus.PENDING.value,
            now,
            OutboxStatus.PROCESSING.value,
            now - timedelta(seconds=self.claim_timeout),
            self.batch_size
        )

        processed = 0
        for row in rows:
            record = OutboxRecord.from_row(row)
            if not await self._claim(record):
                # Another dispatcher got there first
                continue
            await self._deliver(record)
            processed += 1

        if processed:
            logger.debug(f"Drained {processed} outbox record(s)")
        return processed

    async def _claim(self, record: OutboxRecord) -> bool:
        now = _utcnow()
        claimed = await self._db.execute(
            """
            UPDATE outbox
            SET status = $1, claimed_at = $2, last_attempt_at = $2, attempts = attempts + 1
            WHERE id = $3
              AND ((status = $4 AND (next_attempt_at IS NULL OR next_attempt_at <= $2))
                   OR (status = $1 AND claimed_at < $5))
            """,
            OutboxStatus.PROCESSING.value,
            now,
            record.id,
            OutboxStatus.PENDING.value,
            now - timedelta(seconds=self.claim_timeout)
        )
        if claimed != 1:
            return False
        record.status = OutboxStatus.PROCESSING
        record.claimed_at = now
        record.last_attempt_at = now
        record.attempts += 1
        return True

    async def _deliver(self, record: OutboxRecord) -> bool:
        """Publish a claimed record and settle its status."""
        destination = destination_for(record.event_kind)
        envelope = EventEnvelope.from_record(record)
        started = time.monotonic()

        with create_span(
            "outbox.publish",
            {
                "outbox.id": str(record.id),
                "outbox.event_kind": record.event_kind,
                "outbox.attempt": record.attempts,
                "channel.destination": destination,
            },
        ) as span:
            try:
                receipt = await asyncio.wait_for(
                    self._channel.publish(
                        destination,
                        envelope.to_bytes(),
                        idempotency_key=record.idempotency_key,
                    ),
                    timeout=self.publish_timeout,
                )
            except asyncio.TimeoutError:
                span.set_attribute("outbox.delivered", False)
                await self._release(
                    record, f"Publish timed out after {self.publish_timeout}s"
                )
                return False
            except TransientChannelFailure as e:
                span.set_attribute("outbox.delivered", False)
                await self._release(record, e.message)
                return False
            except Exception as e:
                span.set_attribute("outbox.delivered", False)
                logger.error(f"Unexpected channel error for {record.id}: {e}", exc_info=True)
                await self._release(record, str(e))
                return False

            span.set_attribute("outbox.delivered", True)
            span.set_attribute("outbox.duplicate", receipt.duplicate)

        record_histogram(
            "outbox_publish_duration_seconds",
            time.monotonic() - started,
            {"destination": destination},
        )
        await self._mark_delivered(record)
        return True

    async def _mark_delivered(self, record: OutboxRecord) -> None:
        now = _utcnow()
        updated = await self._db.execute(
            """
            UPDATE outbox
            SET status = $1, delivered_at = $2, claimed_at = NULL,
                next_attempt_at = NULL, error_message = NULL
            WHERE id = $3 AND status = $4
            """,
            OutboxStatus.DELIVERED.value,
            now,
            record.id,
            OutboxStatus.PROCESSING.value
        )
        if updated != 1:
            # Claim expired and someone else settled it; the channel dedups
            logger.warning(f"Outbox record {record.id} was settled by another dispatcher")
            return

        record.status = OutboxStatus.DELIVERED
        record.delivered_at = now
        record_counter("outbox_delivered_total", attributes={"event_kind": record.event_kind})
        logger.info(
            f"Delivered outbox record {record.id} ({record.event_kind}) "
            f"on attempt {record.attempts}"
        )

    async def _release(self, record: OutboxRecord, error: str) -> None:
        """Return a claimed record to pending after a failed attempt."""
        next_attempt = calculate_next_attempt(record.attempts, self.retry_intervals)
        await self._db.execute(
            """
            UPDATE outbox
            SET status = $1, claimed_at = NULL, next_attempt_at = $2, error_message = $3
            WHERE id = $4 AND status = $5
            """,
            OutboxStatus.PENDING.value,
            next_attempt,
            error[:500],
            record.id,
            OutboxStatus.PROCESSING.value
        )
        record.status = OutboxStatus.PENDING
        record.claimed_at = None
        record.next_attempt_at = next_attempt
        record.error_message = error[:500]

        record_counter(
            "outbox_failed_attempts_total", attributes={"event_kind": record.event_kind}
        )
        logger.warning(
            f"Outbox record {record.id} failed (attempt {record.attempts}), "
            f"retry at {next_attempt.isoformat()}: {error}"
        )

    async def get_record(self, record_id) -> Optional[OutboxRecord]:
        row = await self._db.fetchrow(
            f"SELECT {OUTBOX_COLUMNS} FROM outbox WHERE id = $1", record_id
        )
        return OutboxRecord.from_row(row) if row else None

    async def get_stats(self) -> Dict[str, int]:
        """Get outbox record counts per status."""
        rows = await self._db.fetch(
            """
            SELECT status, COUNT(*) AS count
            FROM outbox
            GROUP BY status
            """
        )

        stats = {status.value: 0 for status in OutboxStatus}
        for row in rows:
            stats[row["status"]] = row["count"]
        return stats

    async def list_pending(self, min_attempts: int = 0, limit: int = 100) -> List[OutboxRecord]:
        """Undelivered records, for monitoring stuck notifications."""
        rows = await self._db.fetch(
            f"""
            SELECT {OUTBOX_COLUMNS}
            FROM outbox
            WHERE status <> $1 AND attempts >= $2
            ORDER BY created_at ASC
            LIMIT $3
            """,
            OutboxStatus.DELIVERED.value,
            min_attempts,
            limit
        )
        return [OutboxRecord.from_row(row) for row in rows]
