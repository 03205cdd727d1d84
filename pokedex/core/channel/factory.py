"""
Channel Factory

Creates the Channel the outbox dispatcher publishes to.

Environment Variables:
    CHANNEL_BACKEND: "memory" (default) or "http"
    CHANNEL_URL: Base URL of the HTTP ingestion API (http backend)
    CHANNEL_TIMEOUT: Per-request timeout in seconds (default: 5.0)
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from .base import Channel
from .http import HttpChannel
from .memory import InMemoryChannel

logger = logging.getLogger(__name__)

# Global singleton instance
_default_channel: Optional[Channel] = None


def get_channel(
    backend: Optional[str] = None,
    *,
    force_new: bool = False,
    **kwargs,
) -> Channel:
    """
    Get a Channel instance.

    Args:
        backend: "memory" or "http". Defaults to CHANNEL_BACKEND.
        force_new: Create a new instance instead of returning the singleton.
        **kwargs: Backend-specific options (base_url, timeout).

    Raises:
        ValueError: unknown backend, or http without a URL
    """
    global _default_channel

    if _default_channel is not None and not force_new and backend is None:
        return _default_channel

    backend = (backend or os.getenv("CHANNEL_BACKEND", "memory")).lower()

    if backend == "memory":
        channel: Channel = InMemoryChannel()
    elif backend == "http":
        base_url = kwargs.get("base_url") or os.getenv("CHANNEL_URL")
        if not base_url:
            raise ValueError("CHANNEL_URL is required for the http channel")
        timeout = float(kwargs.get("timeout") or os.getenv("CHANNEL_TIMEOUT", "5.0"))
        channel = HttpChannel(base_url, timeout=timeout)
    else:
        raise ValueError(f"Unknown channel backend: {backend}")

    logger.info(f"Channel created: {channel.backend_type.value}")

    if not force_new:
        _default_channel = channel
    return channel


async def reset_default_channel() -> None:
    """Close and forget the singleton (for testing)."""
    global _default_channel
    if _default_channel is not None:
        await _default_channel.close()
    _default_channel = None
