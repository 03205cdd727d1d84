"""
Channel Abstraction

Usage:
    from pokedex.core.channel import get_channel

    channel = get_channel()
    receipt = await channel.publish("UserCreatedQueue", body, idempotency_key=key)
"""

from .base import Channel, ChannelBackend, DeliveryReceipt
from .memory import ChannelMessage, InMemoryChannel
from .http import HttpChannel
from .factory import get_channel, reset_default_channel

__all__ = [
    "Channel",
    "ChannelBackend",
    "DeliveryReceipt",
    "ChannelMessage",
    "InMemoryChannel",
    "HttpChannel",
    "get_channel",
    "reset_default_channel",
]
