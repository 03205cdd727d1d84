"""
Event Taxonomy

Event kinds recorded in the outbox and the channel destination each one
is delivered to.
"""

from enum import Enum
from typing import Dict


class EventKind(str, Enum):
    """Kinds of outbound notifications."""
    ACCOUNT_CREATED = "AccountCreated"


# Destination (queue/topic) per event kind
EVENT_DESTINATIONS: Dict[str, str] = {
    EventKind.ACCOUNT_CREATED.value: "UserCreatedQueue",
}

DEFAULT_DESTINATION = "catalog.events"


def validate_event_kind(event_kind: str) -> bool:
    """Check if event kind is known."""
    return event_kind in EVENT_DESTINATIONS


def destination_for(event_kind: str) -> str:
    """Channel destination for an event kind."""
    return EVENT_DESTINATIONS.get(event_kind, DEFAULT_DESTINATION)
