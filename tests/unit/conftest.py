"""
Unit Test Fixtures

Each test gets its own SQLite file under tmp_path with the full schema.
"""

import pytest

from pokedex.core.channel import InMemoryChannel
from pokedex.core.database import DatabaseAdapter, DatabaseConfig, ensure_schema


@pytest.fixture
async def db(tmp_path):
    """Connected adapter on a fresh SQLite database."""
    adapter = DatabaseAdapter(
        DatabaseConfig(backend="sqlite", sqlite_path=str(tmp_path / "pokedex-test.db"))
    )
    await adapter.connect()
    await ensure_schema(adapter)
    yield adapter
    await adapter.disconnect()


@pytest.fixture
def channel():
    """In-memory channel with deduplication."""
    return InMemoryChannel()
