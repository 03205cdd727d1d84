"""
Pokedex Core Package

Database access, catalog services, outbox delivery and observability.
"""

from . import database
from . import events

__all__ = ["database", "events"]
