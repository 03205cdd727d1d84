"""
Persisted Entity Base Models

Each entity maps to one table. Subclasses declare the table name, the
persisted columns (excluding id) and the entity kind used in errors.
"""

from typing import Any, ClassVar, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict


class Entity(BaseModel):
    """A row-backed model with an integer identity."""

    model_config = ConfigDict(from_attributes=True)

    table_name: ClassVar[str]
    columns: ClassVar[Tuple[str, ...]]
    kind: ClassVar[str]

    id: Optional[int] = None

    def column_values(self) -> List[Any]:
        return [getattr(self, column) for column in self.columns]

    @classmethod
    def select_columns(cls) -> str:
        return ", ".join(("id",) + tuple(cls.columns) + cls.extra_select_columns())

    @classmethod
    def extra_select_columns(cls) -> Tuple[str, ...]:
        return ()

    @classmethod
    def from_row(cls, row: Dict[str, Any]):
        return cls.model_validate(row)


class VersionedEntity(Entity):
    """
    A mutable aggregate guarded by optimistic versioning.

    version is 0 until the entity is first persisted.
    """

    version: int = 0

    @classmethod
    def extra_select_columns(cls) -> Tuple[str, ...]:
        return ("version",)
