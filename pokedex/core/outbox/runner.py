"""
Outbox Processor Runner

Standalone entry point that runs the outbox processor as a background
service next to the catalog.

Usage:
    python -m pokedex.core.outbox.runner

Environment Variables:
    DATABASE_BACKEND / SQLITE_PATH / DATABASE_URL: see DatabaseConfig
    CHANNEL_BACKEND / CHANNEL_URL / CHANNEL_TIMEOUT: see get_channel
    OUTBOX_POLL_INTERVAL: Polling interval in seconds (default: 1.0)
    OUTBOX_BATCH_SIZE: Records per drain (default: 100)
    OUTBOX_PUBLISH_TIMEOUT: Per-publish timeout in seconds (default: 5.0)
    OUTBOX_CLAIM_TIMEOUT: Seconds before a stuck claim is reclaimed (default: 60.0)
    OTEL_EXPORTER_OTLP_ENDPOINT: Enables tracing and metrics export when set
    LOG_LEVEL: Logging level (default: INFO)
"""

import asyncio
import logging
import os
import signal
import sys
from typing import Optional

from ..channel.factory import get_channel
from ..database.adapter import close_database, get_database
from ..database.schema import ensure_schema
from ..observability.logging import configure_logging
from ..observability.metrics import init_metrics
from ..observability.tracing import init_tracing
from .dispatcher import NotificationDispatcher
from .processor import OutboxProcessor

logger = logging.getLogger(__name__)


class OutboxRunner:
    """
    Manages the outbox processor lifecycle with graceful shutdown.
    """

    def __init__(self):
        self.processor: Optional[OutboxProcessor] = None
        self._shutdown_event = asyncio.Event()
        self._shutdown_requested = False

    def _setup_signal_handlers(self):
        """Set up signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._handle_shutdown_signal, sig)

    def _handle_shutdown_signal(self, sig: signal.Signals):
        """Handle shutdown signal."""
        if self._shutdown_requested:
            logger.warning(f"Received {sig.name} again, forcing exit")
            sys.exit(1)

        logger.info(f"Received {sig.name}, initiating graceful shutdown")
        self._shutdown_requested = True
        self._shutdown_event.set()

    async def run(self):
        """Run the outbox processor until shutdown is requested."""
        poll_interval = float(os.getenv("OUTBOX_POLL_INTERVAL", "1.0"))
        batch_size = int(os.getenv("OUTBOX_BATCH_SIZE", "100"))
        publish_timeout = float(os.getenv("OUTBOX_PUBLISH_TIMEOUT", "5.0"))
        claim_timeout = float(os.getenv("OUTBOX_CLAIM_TIMEOUT", "60.0"))

        logger.info("Starting Outbox Processor Runner")
        logger.info(f"  Poll interval: {poll_interval}s")
        logger.info(f"  Batch size: {batch_size}")
        logger.info(f"  Publish timeout: {publish_timeout}s")
        logger.info(f"  Claim timeout: {claim_timeout}s")

        self._setup_signal_handlers()

        db = await get_database()
        await ensure_schema(db)
        channel = get_channel()

        dispatcher = NotificationDispatcher(
            db,
            channel,
            batch_size=batch_size,
            publish_timeout=publish_timeout,
            claim_timeout=claim_timeout
        )
        self.processor = OutboxProcessor(dispatcher, poll_interval=poll_interval)

        try:
            await self.processor.start()
            logger.info("Outbox Processor is running")

            await self._shutdown_event.wait()

        except Exception as e:
            logger.error(f"Outbox Processor error: {e}", exc_info=True)
            raise
        finally:
            logger.info("Stopping Outbox Processor")
            if self.processor:
                await self.processor.stop()
            await channel.close()
            await close_database()
            logger.info("Outbox Processor stopped")

    async def health_check(self) -> dict:
        """Return health status for monitoring."""
        running = self.processor.running if self.processor else False
        status = {
            "status": "healthy" if running else "unhealthy",
            "running": running,
            "shutdown_requested": self._shutdown_requested
        }
        if self.processor:
            status["outbox"] = await self.processor.dispatcher.get_stats()
        return status


async def main():
    """Main entry point."""
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"))

    otlp_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if otlp_endpoint:
        init_tracing(otlp_endpoint=otlp_endpoint)
        init_metrics(otlp_endpoint=otlp_endpoint)

    runner = OutboxRunner()
    await runner.run()


if __name__ == "__main__":
    asyncio.run(main())
