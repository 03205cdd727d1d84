"""
Tests for the transactional outbox: recorder and dispatcher.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from pokedex.core.catalog import AccountUser, UserService
from pokedex.core.channel import DeliveryReceipt, InMemoryChannel
from pokedex.core.database import unit_of_work
from pokedex.core.events import EventEnvelope, EventKind
from pokedex.core.exceptions import TransientChannelFailure
from pokedex.core.outbox import (
    NotificationDispatcher,
    OutboxRecorder,
    OutboxStatus,
    RETRY_INTERVALS,
    calculate_next_attempt,
)


class FlakyChannel(InMemoryChannel):
    """Fails the first `failures` publishes, then behaves normally."""

    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures

    async def publish(self, destination, payload, *, idempotency_key, headers=None):
        if self.failures > 0:
            self.failures -= 1
            self.publish_calls += 1
            raise TransientChannelFailure("broker unavailable", destination)
        return await super().publish(
            destination, payload, idempotency_key=idempotency_key, headers=headers
        )


class SlowChannel(InMemoryChannel):
    """Never acknowledges within the dispatcher's timeout."""

    async def publish(self, destination, payload, *, idempotency_key, headers=None):
        self.publish_calls += 1
        await asyncio.sleep(10)
        raise AssertionError("publish should have been cancelled")


class YieldingChannel(InMemoryChannel):
    """Yields to the event loop inside publish so drains interleave."""

    async def publish(self, destination, payload, *, idempotency_key, headers=None):
        await asyncio.sleep(0.01)
        return await super().publish(
            destination, payload, idempotency_key=idempotency_key, headers=headers
        )


async def outbox_rows(db):
    return await db.fetch("SELECT id, status, attempts, next_attempt_at, error_message FROM outbox")


async def create_red(db) -> AccountUser:
    async with unit_of_work(db) as session:
        return await UserService().create_user(session, "Red", "red@x.com")


class TestOutboxRecorder:
    """recordPending atomicity."""

    @pytest.mark.asyncio
    async def test_rollback_discards_record(self, db):
        """A failed unit of work leaves neither the user nor the record."""
        with pytest.raises(RuntimeError):
            async with unit_of_work(db) as session:
                await UserService().create_user(session, "Red", "red@x.com")
                raise RuntimeError("failure before commit")

        assert await outbox_rows(db) == []
        assert await db.fetchval("SELECT COUNT(*) FROM account_users") == 0

    @pytest.mark.asyncio
    async def test_commit_produces_exactly_one_record(self, db):
        await create_red(db)

        rows = await outbox_rows(db)
        assert len(rows) == 1
        assert rows[0]["status"] == "pending"
        assert rows[0]["attempts"] == 0

    @pytest.mark.asyncio
    async def test_requires_open_session(self, db):
        async with unit_of_work(db) as session:
            pass

        with pytest.raises(RuntimeError):
            await OutboxRecorder(session).record_pending(
                EventKind.ACCOUNT_CREATED, {}, aggregate_type="AccountUser", aggregate_id=1
            )

    @pytest.mark.asyncio
    async def test_unknown_kind_still_recorded(self, db):
        async with unit_of_work(db) as session:
            record = await OutboxRecorder(session).record_pending(
                "TrainerRenamed", {"trainer_id": 1}, aggregate_type="Trainer", aggregate_id=1
            )

        assert record.event_kind == "TrainerRenamed"
        assert len(await outbox_rows(db)) == 1


class TestDrainPending:
    """Dispatcher delivery and state transitions."""

    @pytest.mark.asyncio
    async def test_red_delivered_exactly_once(self, db, channel):
        """Rolled-back creation emits nothing; committed creation is delivered once."""
        with pytest.raises(RuntimeError):
            async with unit_of_work(db) as session:
                await UserService().create_user(session, "Red", "red@x.com")
                raise RuntimeError("abort")

        user = await create_red(db)
        dispatcher = NotificationDispatcher(db, channel)

        assert await dispatcher.drain_pending() == 1
        assert await dispatcher.drain_pending() == 0

        messages = channel.messages("UserCreatedQueue")
        assert len(messages) == 1
        envelope = EventEnvelope.from_bytes(messages[0].payload)
        assert envelope.event_kind == "AccountCreated"
        assert envelope.aggregate_id == str(user.id)
        assert envelope.payload["user_id"] == user.id
        assert messages[0].idempotency_key == str(envelope.id)

        rows = await outbox_rows(db)
        assert rows[0]["status"] == "delivered"
        assert rows[0]["attempts"] == 1

    @pytest.mark.asyncio
    async def test_oldest_first(self, db, channel):
        async with unit_of_work(db) as session:
            first = await UserService().create_user(session, "Red", "red@x.com")
        async with unit_of_work(db) as session:
            second = await UserService().create_user(session, "Blue", "blue@x.com")

        await NotificationDispatcher(db, channel).drain_pending()

        delivered = [EventEnvelope.from_bytes(m.payload).payload["user_id"]
                     for m in channel.messages("UserCreatedQueue")]
        assert delivered == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_failure_keeps_record_pending(self, db):
        """A transient failure raises the attempt count and schedules a retry."""
        await create_red(db)
        channel = FlakyChannel(failures=1)
        dispatcher = NotificationDispatcher(db, channel)

        assert await dispatcher.drain_pending() == 1

        rows = await outbox_rows(db)
        assert rows[0]["status"] == "pending"
        assert rows[0]["attempts"] == 1
        assert rows[0]["next_attempt_at"] is not None
        assert "broker unavailable" in rows[0]["error_message"]
        assert channel.messages("UserCreatedQueue") == []

        # Backoff not yet elapsed
        assert await dispatcher.drain_pending() == 0

    @pytest.mark.asyncio
    async def test_eventually_delivered_once_channel_recovers(self, db):
        await create_red(db)
        channel = FlakyChannel(failures=3)
        dispatcher = NotificationDispatcher(db, channel, retry_intervals=[0])

        for _ in range(4):
            await dispatcher.drain_pending()

        rows = await outbox_rows(db)
        assert rows[0]["status"] == "delivered"
        assert rows[0]["attempts"] == 4
        assert rows[0]["error_message"] is None
        assert len(channel.messages("UserCreatedQueue")) == 1

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, db):
        await create_red(db)
        channel = SlowChannel()
        dispatcher = NotificationDispatcher(
            db, channel, publish_timeout=0.05, claim_timeout=1.0
        )

        assert await dispatcher.drain_pending() == 1

        rows = await outbox_rows(db)
        assert rows[0]["status"] == "pending"
        assert rows[0]["attempts"] == 1
        assert "timed out" in rows[0]["error_message"]

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_escape(self, db):
        class BrokenChannel(InMemoryChannel):
            async def publish(self, destination, payload, *, idempotency_key, headers=None):
                raise ValueError("serializer exploded")

        await create_red(db)
        dispatcher = NotificationDispatcher(db, BrokenChannel())

        assert await dispatcher.drain_pending() == 1
        rows = await outbox_rows(db)
        assert rows[0]["status"] == "pending"
        assert rows[0]["error_message"] == "serializer exploded"

    @pytest.mark.asyncio
    async def test_concurrent_drains_publish_once(self, db):
        """Two drains over the same record make a single publish attempt."""
        await create_red(db)
        channel = YieldingChannel()
        first = NotificationDispatcher(db, channel)
        second = NotificationDispatcher(db, channel)

        counts = await asyncio.gather(first.drain_pending(), second.drain_pending())

        assert sorted(counts) == [0, 1]
        assert channel.publish_calls == 1
        rows = await outbox_rows(db)
        assert rows[0]["status"] == "delivered"
        assert rows[0]["attempts"] == 1

    @pytest.mark.asyncio
    async def test_stale_claim_is_recovered(self, db, channel):
        """A record stuck in processing past the claim timeout is claimed again."""
        await create_red(db)
        stale = datetime.now(timezone.utc) - timedelta(minutes=10)
        await db.execute(
            "UPDATE outbox SET status = $1, claimed_at = $2, attempts = 1",
            OutboxStatus.PROCESSING.value,
            stale
        )

        dispatcher = NotificationDispatcher(db, channel)
        assert await dispatcher.drain_pending() == 1

        rows = await outbox_rows(db)
        assert rows[0]["status"] == "delivered"
        assert rows[0]["attempts"] == 2

    @pytest.mark.asyncio
    async def test_fresh_claim_is_left_alone(self, db, channel):
        await create_red(db)
        await db.execute(
            "UPDATE outbox SET status = $1, claimed_at = $2, attempts = 1",
            OutboxStatus.PROCESSING.value,
            datetime.now(timezone.utc)
        )

        assert await NotificationDispatcher(db, channel).drain_pending() == 0
        assert channel.publish_calls == 0

    @pytest.mark.asyncio
    async def test_duplicate_receipt_still_marks_delivered(self, db):
        """A redelivered record the channel already holds is settled, not republished."""
        await create_red(db)
        rows = await outbox_rows(db)
        channel = InMemoryChannel()
        await channel.publish("UserCreatedQueue", b"{}", idempotency_key=str(rows[0]["id"]))

        await NotificationDispatcher(db, channel).drain_pending()

        assert len(channel.messages("UserCreatedQueue")) == 1
        assert (await outbox_rows(db))[0]["status"] == "delivered"

    @pytest.mark.asyncio
    async def test_failing_consumer_does_not_cause_redelivery(self, db, channel):
        """A consumer error after acceptance settles the record; nothing is published twice."""
        await create_red(db)
        consumed = []

        async def crashing_consumer(message):
            consumed.append(message.idempotency_key)
            raise RuntimeError("consumer crashed")

        channel.subscribe("UserCreatedQueue", crashing_consumer)
        dispatcher = NotificationDispatcher(db, channel, retry_intervals=[0])

        assert await dispatcher.drain_pending() == 1
        assert await dispatcher.drain_pending() == 0

        assert len(channel.messages("UserCreatedQueue")) == 1
        assert len(consumed) == 1
        assert (await outbox_rows(db))[0]["status"] == "delivered"

    @pytest.mark.asyncio
    async def test_failure_does_not_touch_user(self, db):
        user = await create_red(db)
        await NotificationDispatcher(db, FlakyChannel(failures=5)).drain_pending()

        async with unit_of_work(db) as session:
            assert await UserService().find_user(session, user.id) is not None


class TestDispatcherMonitoring:
    """Stats and pending listings."""

    @pytest.mark.asyncio
    async def test_get_stats(self, db, channel):
        await create_red(db)
        await create_red(db)
        dispatcher = NotificationDispatcher(db, channel, batch_size=1)

        assert await dispatcher.get_stats() == {"pending": 2, "processing": 0, "delivered": 0}
        await dispatcher.drain_pending()
        assert await dispatcher.get_stats() == {"pending": 1, "processing": 0, "delivered": 1}

    @pytest.mark.asyncio
    async def test_list_pending_by_attempts(self, db):
        await create_red(db)
        await create_red(db)
        dispatcher = NotificationDispatcher(db, FlakyChannel(failures=1), batch_size=1)
        await dispatcher.drain_pending()

        assert len(await dispatcher.list_pending()) == 2
        stuck = await dispatcher.list_pending(min_attempts=1)
        assert len(stuck) == 1
        assert stuck[0].attempts == 1
        assert stuck[0].status == OutboxStatus.PENDING

    @pytest.mark.asyncio
    async def test_get_record(self, db, channel):
        await create_red(db)
        rows = await outbox_rows(db)
        dispatcher = NotificationDispatcher(db, channel)

        record = await dispatcher.get_record(rows[0]["id"])
        assert record.event_kind == "AccountCreated"
        assert record.payload["name"] == "Red"
        assert record.idempotency_key == str(record.id)


class TestDispatcherConfig:
    """Backoff schedule and option validation."""

    def test_claim_timeout_must_exceed_publish_timeout(self):
        with pytest.raises(ValueError):
            NotificationDispatcher(None, InMemoryChannel(), publish_timeout=5.0, claim_timeout=5.0)

    def test_backoff_schedule(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)

        assert calculate_next_attempt(1, now=now) == now + timedelta(seconds=RETRY_INTERVALS[0])
        assert calculate_next_attempt(2, now=now) == now + timedelta(seconds=15)
        assert calculate_next_attempt(50, now=now) == now + timedelta(seconds=RETRY_INTERVALS[-1])

    def test_empty_schedule_retries_immediately(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert calculate_next_attempt(3, [], now=now) == now

    def test_receipt_defaults(self):
        receipt = DeliveryReceipt(destination="q", idempotency_key="k", message_id="m")
        assert receipt.duplicate is False
