"""
Catalog Event System

Usage:
    from pokedex.core.events import EventKind, EventEnvelope, destination_for

    envelope = EventEnvelope.from_bytes(message.payload)
    if envelope.event_kind == EventKind.ACCOUNT_CREATED.value:
        ...
"""

from .taxonomy import (
    EventKind,
    EVENT_DESTINATIONS,
    DEFAULT_DESTINATION,
    validate_event_kind,
    destination_for,
)
from .models import EventEnvelope

__all__ = [
    "EventKind",
    "EVENT_DESTINATIONS",
    "DEFAULT_DESTINATION",
    "validate_event_kind",
    "destination_for",
    "EventEnvelope",
]
