"""
Database access layer supporting SQLite and PostgreSQL.

Usage:
    from pokedex.core.database import get_database, unit_of_work

    db = await get_database()
    async with unit_of_work(db) as session:
        trainer = await session.find(Trainer, trainer_id)
"""

from .adapter import (
    DatabaseAdapter,
    DatabaseBackend,
    DatabaseConfig,
    IntegrityViolation,
    Transaction,
    get_database,
    close_database,
)
from .entity import Entity, VersionedEntity
from .schema import ensure_schema
from .session import Session, unit_of_work

__all__ = [
    "DatabaseAdapter",
    "DatabaseBackend",
    "DatabaseConfig",
    "IntegrityViolation",
    "Transaction",
    "get_database",
    "close_database",
    "Entity",
    "VersionedEntity",
    "ensure_schema",
    "Session",
    "unit_of_work",
]
