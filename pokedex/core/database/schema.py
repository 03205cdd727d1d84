"""
Catalog Schema

Tables for the catalog aggregates, the capture join entity, the outbox
and the consumer inbox. Created idempotently at startup.
"""

import logging
from typing import Dict, List

from .adapter import DatabaseAdapter, DatabaseBackend

logger = logging.getLogger(__name__)


SQLITE_DDL: List[str] = [
    """
    CREATE TABLE IF NOT EXISTS trainers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        email TEXT NOT NULL,
        version INTEGER NOT NULL DEFAULT 1
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS pokemon (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        pokedex_number INTEGER NOT NULL,
        name TEXT NOT NULL,
        hp INTEGER NOT NULL DEFAULT 0,
        attack INTEGER NOT NULL DEFAULT 0,
        defense INTEGER NOT NULL DEFAULT 0,
        speed INTEGER NOT NULL DEFAULT 0,
        version INTEGER NOT NULL DEFAULT 1
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_pokemon_pokedex_number ON pokemon (pokedex_number)",
    """
    CREATE TABLE IF NOT EXISTS type_tags (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        version INTEGER NOT NULL DEFAULT 1
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS pokemon_types (
        pokemon_id INTEGER NOT NULL REFERENCES pokemon (id) ON DELETE CASCADE,
        type_id INTEGER NOT NULL REFERENCES type_tags (id) ON DELETE CASCADE,
        PRIMARY KEY (pokemon_id, type_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS captures (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        trainer_id INTEGER NOT NULL REFERENCES trainers (id),
        pokemon_id INTEGER NOT NULL REFERENCES pokemon (id),
        captured_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_captures_trainer ON captures (trainer_id)",
    "CREATE INDEX IF NOT EXISTS idx_captures_pokemon ON captures (pokemon_id)",
    """
    CREATE TABLE IF NOT EXISTS account_users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        email TEXT NOT NULL,
        version INTEGER NOT NULL DEFAULT 1
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS outbox (
        id TEXT PRIMARY KEY,
        event_kind TEXT NOT NULL,
        aggregate_type TEXT NOT NULL,
        aggregate_id TEXT NOT NULL,
        payload TEXT NOT NULL,
        status TEXT NOT NULL,
        attempts INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        claimed_at TEXT,
        last_attempt_at TEXT,
        next_attempt_at TEXT,
        delivered_at TEXT,
        error_message TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_outbox_status_created ON outbox (status, created_at)",
    """
    CREATE TABLE IF NOT EXISTS inbox (
        event_id TEXT NOT NULL,
        consumer_id TEXT NOT NULL,
        processed_at TEXT NOT NULL,
        PRIMARY KEY (event_id, consumer_id)
    )
    """,
]


POSTGRES_DDL: List[str] = [
    """
    CREATE TABLE IF NOT EXISTS trainers (
        id BIGSERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT NOT NULL,
        version INTEGER NOT NULL DEFAULT 1
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS pokemon (
        id BIGSERIAL PRIMARY KEY,
        pokedex_number INTEGER NOT NULL,
        name TEXT NOT NULL,
        hp INTEGER NOT NULL DEFAULT 0 CHECK (hp >= 0),
        attack INTEGER NOT NULL DEFAULT 0 CHECK (attack >= 0),
        defense INTEGER NOT NULL DEFAULT 0 CHECK (defense >= 0),
        speed INTEGER NOT NULL DEFAULT 0 CHECK (speed >= 0),
        version INTEGER NOT NULL DEFAULT 1
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_pokemon_pokedex_number ON pokemon (pokedex_number)",
    """
    CREATE TABLE IF NOT EXISTS type_tags (
        id BIGSERIAL PRIMARY KEY,
        name TEXT NOT NULL UNIQUE,
        version INTEGER NOT NULL DEFAULT 1
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS pokemon_types (
        pokemon_id BIGINT NOT NULL REFERENCES pokemon (id) ON DELETE CASCADE,
        type_id BIGINT NOT NULL REFERENCES type_tags (id) ON DELETE CASCADE,
        PRIMARY KEY (pokemon_id, type_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS captures (
        id BIGSERIAL PRIMARY KEY,
        trainer_id BIGINT NOT NULL REFERENCES trainers (id),
        pokemon_id BIGINT NOT NULL REFERENCES pokemon (id),
        captured_at TIMESTAMPTZ NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_captures_trainer ON captures (trainer_id)",
    "CREATE INDEX IF NOT EXISTS idx_captures_pokemon ON captures (pokemon_id)",
    """
    CREATE TABLE IF NOT EXISTS account_users (
        id BIGSERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT NOT NULL,
        version INTEGER NOT NULL DEFAULT 1
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS outbox (
        id UUID PRIMARY KEY,
        event_kind TEXT NOT NULL,
        aggregate_type TEXT NOT NULL,
        aggregate_id TEXT NOT NULL,
        payload JSONB NOT NULL,
        status TEXT NOT NULL,
        attempts INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMPTZ NOT NULL,
        claimed_at TIMESTAMPTZ,
        last_attempt_at TIMESTAMPTZ,
        next_attempt_at TIMESTAMPTZ,
        delivered_at TIMESTAMPTZ,
        error_message TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_outbox_status_created ON outbox (status, created_at)",
    """
    CREATE TABLE IF NOT EXISTS inbox (
        event_id UUID NOT NULL,
        consumer_id TEXT NOT NULL,
        processed_at TIMESTAMPTZ NOT NULL,
        PRIMARY KEY (event_id, consumer_id)
    )
    """,
]

DDL: Dict[DatabaseBackend, List[str]] = {
    DatabaseBackend.SQLITE: SQLITE_DDL,
    DatabaseBackend.POSTGRESQL: POSTGRES_DDL,
}


async def ensure_schema(db: DatabaseAdapter) -> None:
    """Create all catalog tables that do not exist yet."""
    statements = DDL[db.backend]
    async with db.transaction() as tx:
        for statement in statements:
            await tx.execute(statement)
    logger.info(f"Schema ready ({db.backend.value}, {len(statements)} statements)")
