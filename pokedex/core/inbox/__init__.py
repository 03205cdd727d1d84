"""
Inbox Pattern Implementation

Consumer-side deduplication for at-least-once notifications.

Usage:
    from pokedex.core.inbox import InboxGuard

    async with InboxGuard(db, envelope.id, consumer_id="my-consumer") as guard:
        if guard.should_process:
            await do_something(envelope)
"""

from .guard import InboxGuard, is_processed, mark_processed, remove_processed

__all__ = [
    "InboxGuard",
    "is_processed",
    "mark_processed",
    "remove_processed",
]
