"""
Unit of Work

A Session wraps one database transaction and an identity map. Services
receive the session explicitly; nothing is ambient.

Usage:
    async with unit_of_work(db) as session:
        trainer = await session.persist(Trainer(name="Ash", email="ash@pokemon.com"))
        session.after_commit(processor.notify)
    # committed here; after-commit callbacks have run
"""

import inspect
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Tuple, Type, TypeVar

from ..exceptions import NotFoundError, PersistenceConflict
from .adapter import DatabaseAdapter, Transaction
from .entity import Entity, VersionedEntity

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)


class Session:
    """
    Persistence context bound to one transaction.

    Within a session, find() returns the same instance for the same
    (type, id), so relationship views loaded on an aggregate stay warm
    for the rest of the unit of work.
    """

    def __init__(self, tx: Transaction):
        self.tx = tx
        self._identity_map: Dict[Tuple[type, Any], Entity] = {}
        self._after_commit: List[Callable[[], Any]] = []
        self._closed = False

    @property
    def active(self) -> bool:
        return not self._closed

    def _check_active(self) -> None:
        if self._closed:
            raise RuntimeError("Session is closed")

    def _register(self, entity: E) -> E:
        key = (type(entity), entity.id)
        managed = self._identity_map.get(key)
        if managed is not None:
            return managed
        self._identity_map[key] = entity
        return entity

    def get_loaded(self, entity_type: Type[E], entity_id: Any) -> Optional[E]:
        """Return the managed instance if this session already loaded it."""
        return self._identity_map.get((entity_type, entity_id))

    async def find(self, entity_type: Type[E], entity_id: Any) -> Optional[E]:
        """Load an entity by id, or None when absent."""
        self._check_active()
        if entity_id is None:
            return None

        managed = self.get_loaded(entity_type, entity_id)
        if managed is not None:
            return managed

        row = await self.tx.fetchrow(
            f"SELECT {entity_type.select_columns()} FROM {entity_type.table_name} WHERE id = $1",
            entity_id
        )
        if row is None:
            return None
        return self._register(entity_type.from_row(row))

    async def select(
        self,
        entity_type: Type[E],
        where: Optional[str] = None,
        *args,
        order_by: str = "id"
    ) -> List[E]:
        """Load entities matching a WHERE clause, reusing managed instances."""
        self._check_active()
        query = f"SELECT {entity_type.select_columns()} FROM {entity_type.table_name}"
        if where:
            query += f" WHERE {where}"
        query += f" ORDER BY {order_by}"

        rows = await self.tx.fetch(query, *args)
        return [self._register(entity_type.from_row(row)) for row in rows]

    async def list_all(self, entity_type: Type[E], order_by: str = "id") -> List[E]:
        """Load every entity of a type."""
        return await self.select(entity_type, None, order_by=order_by)

    async def persist(self, entity: E) -> E:
        """
        Insert a new entity and assign its id.

        An id already set on the entity is kept (used when seeding).
        """
        self._check_active()
        columns = list(entity.columns)
        values = entity.column_values()
        if isinstance(entity, VersionedEntity):
            entity.version = 1
            columns.append("version")
            values.append(entity.version)
        if entity.id is not None:
            columns.insert(0, "id")
            values.insert(0, entity.id)

        placeholders = ", ".join(f"${i}" for i in range(1, len(values) + 1))
        entity.id = await self.tx.fetchval(
            f"INSERT INTO {entity.table_name} ({', '.join(columns)}) "
            f"VALUES ({placeholders}) RETURNING id",
            *values
        )
        self._identity_map[(type(entity), entity.id)] = entity
        logger.debug(f"Persisted {entity.kind} {entity.id}")
        return entity

    async def merge(self, entity: E) -> E:
        """
        Write the state of an existing entity.

        Versioned entities update only when the stored version still
        matches; otherwise PersistenceConflict is raised. Returns the
        managed instance carrying the merged state.
        """
        self._check_active()
        if entity.id is None:
            raise ValueError(f"Cannot merge {entity.kind} without an id")

        columns = list(entity.columns)
        values = entity.column_values()
        assignments = ", ".join(f"{column} = ${i}" for i, column in enumerate(columns, start=1))
        id_param = len(values) + 1

        if isinstance(entity, VersionedEntity):
            count = await self.tx.execute(
                f"UPDATE {entity.table_name} SET {assignments}, version = version + 1 "
                f"WHERE id = ${id_param} AND version = ${id_param + 1}",
                *values, entity.id, entity.version
            )
            if count == 0:
                if await self.tx.fetchval(
                    f"SELECT id FROM {entity.table_name} WHERE id = $1", entity.id
                ) is None:
                    raise NotFoundError(entity.kind, entity.id)
                raise PersistenceConflict(entity.kind, entity.id)
            entity.version += 1
        else:
            count = await self.tx.execute(
                f"UPDATE {entity.table_name} SET {assignments} WHERE id = ${id_param}",
                *values, entity.id
            )
            if count == 0:
                raise NotFoundError(entity.kind, entity.id)

        managed = self.get_loaded(type(entity), entity.id)
        if managed is not None and managed is not entity:
            for column in columns:
                setattr(managed, column, getattr(entity, column))
            if isinstance(entity, VersionedEntity):
                managed.version = entity.version
            return managed
        self._identity_map[(type(entity), entity.id)] = entity
        return entity

    async def remove(self, entity: Entity) -> None:
        """Delete an entity's row and forget the managed instance."""
        self._check_active()
        await self.tx.execute(f"DELETE FROM {entity.table_name} WHERE id = $1", entity.id)
        self._identity_map.pop((type(entity), entity.id), None)
        logger.debug(f"Removed {entity.kind} {entity.id}")

    def after_commit(self, callback: Callable[[], Any]) -> None:
        """Run callback once this unit of work has committed."""
        self._check_active()
        self._after_commit.append(callback)

    async def _run_after_commit(self) -> None:
        for callback in self._after_commit:
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                # The write is committed; a hook failure must not unwind it
                logger.error(f"After-commit callback failed: {e}", exc_info=True)
        self._after_commit = []


@asynccontextmanager
async def unit_of_work(db: DatabaseAdapter) -> AsyncIterator[Session]:
    """
    Open a unit of work.

    Either every write made through the session commits or none does.
    After-commit callbacks run only when the commit succeeded.
    """
    async with db.transaction() as tx:
        session = Session(tx)
        try:
            yield session
        finally:
            session._closed = True
    await session._run_after_commit()
