"""
Outbox Processor

Background task that drives the NotificationDispatcher. It drains on a
fixed poll interval and can be woken early with notify(), which the
user-creation flow registers as its after-commit callback.
"""

import asyncio
import logging
from typing import Optional

from ..channel.base import Channel
from ..channel.factory import get_channel
from ..database.adapter import DatabaseAdapter, get_database
from .dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)


class OutboxProcessor:
    """
    Polls the outbox and delivers pending records.

    Usage:
        processor = OutboxProcessor(dispatcher, poll_interval=1.0)
        await processor.start()
        ...
        processor.notify()  # deliver now instead of at the next tick
        ...
        await processor.stop()
    """

    def __init__(self, dispatcher: NotificationDispatcher, poll_interval: float = 1.0):
        self.dispatcher = dispatcher
        self.poll_interval = poll_interval
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._wakeup = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start the processor."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info("OutboxProcessor started")

    async def stop(self):
        """Stop the processor."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("OutboxProcessor stopped")

    def notify(self) -> None:
        """Wake the loop so newly committed records go out immediately."""
        self._wakeup.set()

    async def _wait_for_tick(self):
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            pass
        self._wakeup.clear()

    async def _run(self):
        """Main processing loop."""
        while self._running:
            try:
                processed = await self.dispatcher.drain_pending()
                if processed < self.dispatcher.batch_size:
                    # Caught up, wait for the next tick or a nudge
                    await self._wait_for_tick()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"OutboxProcessor error: {e}", exc_info=True)
                await self._wait_for_tick()


# Global processor instance
_processor: Optional[OutboxProcessor] = None


async def start_outbox_processor(
    db: Optional[DatabaseAdapter] = None,
    channel: Optional[Channel] = None,
    *,
    poll_interval: float = 1.0,
    **dispatcher_options,
) -> OutboxProcessor:
    """Start the global outbox processor."""
    global _processor

    if _processor is None:
        dispatcher = NotificationDispatcher(
            db or await get_database(),
            channel or get_channel(),
            **dispatcher_options
        )
        _processor = OutboxProcessor(dispatcher, poll_interval=poll_interval)

    await _processor.start()
    return _processor


async def stop_outbox_processor():
    """Stop the global outbox processor."""
    global _processor
    if _processor:
        await _processor.stop()
        _processor = None


async def get_outbox_processor() -> Optional[OutboxProcessor]:
    """Get the global outbox processor instance."""
    return _processor
