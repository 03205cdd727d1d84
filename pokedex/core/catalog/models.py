"""
Catalog Models

Trainers, pokemon, type tags and account users are independent
aggregates. A Capture joins one trainer to one pokemon and is immutable
once created.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar, List, Tuple

from pydantic import Field, PrivateAttr

from ..database.entity import Entity, VersionedEntity


def _utcnow() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


class EntityKind(str, Enum):
    """Kinds of persisted entities, as named in errors and events."""
    TRAINER = "Trainer"
    POKEMON = "Pokemon"
    CAPTURE = "Capture"
    TYPE_TAG = "TypeTag"
    ACCOUNT_USER = "AccountUser"


class Capture(Entity):
    """Records that a trainer caught a pokemon."""

    table_name: ClassVar[str] = "captures"
    columns: ClassVar[Tuple[str, ...]] = ("trainer_id", "pokemon_id", "captured_at")
    kind: ClassVar[str] = EntityKind.CAPTURE.value

    trainer_id: int
    pokemon_id: int
    captured_at: datetime = Field(default_factory=_utcnow)


class CaptureOwner(VersionedEntity):
    """
    An aggregate that owns a back-reference view of its captures.

    The view is never the source of truth for existence. It is filled on
    first use within a session and then maintained by the association
    manager as captures are created or deleted.
    """

    captures: List[Capture] = Field(default_factory=list, exclude=True)
    _captures_loaded: bool = PrivateAttr(default=False)

    capture_column: ClassVar[str]

    @property
    def captures_loaded(self) -> bool:
        return self._captures_loaded

    def load_captures(self, captures: List[Capture]) -> None:
        self.captures = list(captures)
        self._captures_loaded = True


class Trainer(CaptureOwner):
    table_name: ClassVar[str] = "trainers"
    columns: ClassVar[Tuple[str, ...]] = ("name", "email")
    kind: ClassVar[str] = EntityKind.TRAINER.value
    capture_column: ClassVar[str] = "trainer_id"

    name: str
    email: str


class Pokemon(CaptureOwner):
    """A pokemon species entry. pokedex_number is not unique across rows."""

    table_name: ClassVar[str] = "pokemon"
    columns: ClassVar[Tuple[str, ...]] = (
        "pokedex_number", "name", "hp", "attack", "defense", "speed"
    )
    kind: ClassVar[str] = EntityKind.POKEMON.value
    capture_column: ClassVar[str] = "pokemon_id"

    pokedex_number: int
    name: str
    hp: int = 0
    attack: int = 0
    defense: int = 0
    speed: int = 0


class TypeTag(VersionedEntity):
    table_name: ClassVar[str] = "type_tags"
    columns: ClassVar[Tuple[str, ...]] = ("name",)
    kind: ClassVar[str] = EntityKind.TYPE_TAG.value

    name: str


class AccountUser(VersionedEntity):
    table_name: ClassVar[str] = "account_users"
    columns: ClassVar[Tuple[str, ...]] = ("name", "email")
    kind: ClassVar[str] = EntityKind.ACCOUNT_USER.value

    name: str
    email: str
