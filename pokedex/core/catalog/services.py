"""
Catalog Services

Create/find/list/update/delete for the catalog aggregates, plus the
user-creation flow that stages an AccountCreated notification.

Every method takes the Session of the caller's unit of work. Nothing
here commits; the surrounding unit_of_work does.

Update of an absent id returns None and delete of an absent id is a
no-op, so a request layer can map both to its own "not found" response.
"""

import logging
from typing import Any, Callable, List, Optional, Sequence

from ..database.adapter import IntegrityViolation
from ..database.session import Session
from ..error_codes import ErrorCode
from ..events.taxonomy import EventKind
from ..exceptions import ConflictError, NotFoundError, ValidationFailed
from ..outbox.writer import OutboxRecorder
from .captures import AssociationManager
from .models import AccountUser, EntityKind, Pokemon, Trainer, TypeTag

logger = logging.getLogger(__name__)

POKEMON_STATS = ("hp", "attack", "defense", "speed")


def _require_name(value: str, field: str = "name") -> None:
    if value is None or not str(value).strip():
        raise ValidationFailed(f"{field} must not be blank", field=field)


async def _merge_existing(session: Session, entity):
    """
    Merge an entity onto its stored row, or return None when the row is gone.

    An entity built without a version (0) is written against the stored
    version; an explicit version must still match.
    """
    stored = await session.find(type(entity), entity.id)
    if stored is None:
        return None
    if entity is not stored and not entity.version:
        entity.version = stored.version
    return await session.merge(entity)


class TrainerService:
    """
    Trainer aggregate operations.

    Usage:
        service = TrainerService()
        async with unit_of_work(db) as session:
            ash = await service.create(session, "Ash", "ash@pokemon.com")
    """

    def __init__(self, associations: Optional[AssociationManager] = None):
        self.associations = associations or AssociationManager()

    async def create(self, session: Session, name: str, email: str, trainer_id: Optional[int] = None) -> Trainer:
        _require_name(name)
        trainer = await session.persist(Trainer(id=trainer_id, name=name, email=email))
        logger.info(f"Trainer {trainer.id} created: {trainer.name}")
        return trainer

    async def find(self, session: Session, trainer_id: int) -> Optional[Trainer]:
        return await session.find(Trainer, trainer_id)

    async def list_all(self, session: Session) -> List[Trainer]:
        return await session.list_all(Trainer)

    async def update(self, session: Session, trainer: Trainer) -> Optional[Trainer]:
        """Write a trainer's name and email. Returns None when it no longer exists."""
        _require_name(trainer.name)
        return await _merge_existing(session, trainer)

    async def delete(self, session: Session, trainer_id: int) -> None:
        """Delete a trainer together with its captures."""
        trainer = await session.find(Trainer, trainer_id)
        if trainer is None:
            return
        removed = await self.associations.delete_captures_of(session, trainer)
        await session.remove(trainer)
        logger.info(f"Trainer {trainer_id} deleted with {removed} capture(s)")


class PokemonService:
    """Pokemon aggregate operations, including type assignment."""

    def __init__(self, associations: Optional[AssociationManager] = None):
        self.associations = associations or AssociationManager()

    @staticmethod
    def validate(pokemon: Pokemon) -> None:
        """
        Reject malformed pokemon before any write.

        Raises:
            ValidationFailed: blank name, non-positive pokedex number or a
                negative stat
        """
        _require_name(pokemon.name)
        if pokemon.pokedex_number <= 0:
            raise ValidationFailed(
                f"pokedex_number must be positive, got {pokemon.pokedex_number}",
                field="pokedex_number",
            )
        for stat in POKEMON_STATS:
            value = getattr(pokemon, stat)
            if value < 0:
                raise ValidationFailed(f"{stat} must not be negative, got {value}", field=stat)

    async def create(self, session: Session, pokemon: Pokemon) -> Pokemon:
        self.validate(pokemon)
        pokemon = await session.persist(pokemon)
        logger.info(f"Pokemon {pokemon.id} created: #{pokemon.pokedex_number} {pokemon.name}")
        return pokemon

    async def find(self, session: Session, pokemon_id: int) -> Optional[Pokemon]:
        return await session.find(Pokemon, pokemon_id)

    async def list_all(self, session: Session) -> List[Pokemon]:
        return await session.list_all(Pokemon, order_by="pokedex_number, id")

    async def update(self, session: Session, pokemon: Pokemon) -> Optional[Pokemon]:
        self.validate(pokemon)
        return await _merge_existing(session, pokemon)

    async def delete(self, session: Session, pokemon_id: int) -> None:
        """Delete a pokemon, its captures and its type assignments."""
        pokemon = await session.find(Pokemon, pokemon_id)
        if pokemon is None:
            return
        removed = await self.associations.delete_captures_of(session, pokemon)
        await session.tx.execute("DELETE FROM pokemon_types WHERE pokemon_id = $1", pokemon_id)
        await session.remove(pokemon)
        logger.info(f"Pokemon {pokemon_id} deleted with {removed} capture(s)")

    async def assign_types(
        self, session: Session, pokemon_id: int, type_names: Sequence[str]
    ) -> List[TypeTag]:
        """
        Replace the types of a pokemon.

        Raises:
            NotFoundError: the pokemon, or any named type, is absent
        """
        pokemon = await session.find(Pokemon, pokemon_id)
        if pokemon is None:
            raise NotFoundError(EntityKind.POKEMON, pokemon_id)

        tags: List[TypeTag] = []
        for name in dict.fromkeys(type_names):
            matches = await session.select(TypeTag, "name = $1", name)
            if not matches:
                raise NotFoundError(EntityKind.TYPE_TAG, name)
            tags.append(matches[0])

        await session.tx.execute("DELETE FROM pokemon_types WHERE pokemon_id = $1", pokemon_id)
        for tag in tags:
            await session.tx.execute(
                "INSERT INTO pokemon_types (pokemon_id, type_id) VALUES ($1, $2)",
                pokemon_id,
                tag.id
            )
        return tags

    async def list_types(self, session: Session, pokemon_id: int) -> List[TypeTag]:
        """Types of a pokemon, by name; empty when the pokemon is absent."""
        return await session.select(
            TypeTag,
            "id IN (SELECT type_id FROM pokemon_types WHERE pokemon_id = $1)",
            pokemon_id,
            order_by="name"
        )


class TypeService:
    """
    TypeTag operations.

    Names are unique and case-sensitive. A duplicate is rejected up front
    and again by the UNIQUE constraint when two writers race.
    """

    async def create(self, session: Session, name: str) -> TypeTag:
        _require_name(name)
        await self._check_name_free(session, name)
        try:
            tag = await session.persist(TypeTag(name=name))
        except IntegrityViolation as e:
            raise self._duplicate(name) from e
        logger.info(f"TypeTag {tag.id} created: {tag.name}")
        return tag

    async def find(self, session: Session, type_id: int) -> Optional[TypeTag]:
        return await session.find(TypeTag, type_id)

    async def find_by_name(self, session: Session, name: str) -> Optional[TypeTag]:
        matches = await session.select(TypeTag, "name = $1", name)
        return matches[0] if matches else None

    async def list_all(self, session: Session) -> List[TypeTag]:
        return await session.list_all(TypeTag, order_by="name")

    async def update(self, session: Session, tag: TypeTag) -> Optional[TypeTag]:
        _require_name(tag.name)
        if await session.find(TypeTag, tag.id) is None:
            return None
        await self._check_name_free(session, tag.name, exclude_id=tag.id)
        try:
            return await _merge_existing(session, tag)
        except IntegrityViolation as e:
            raise self._duplicate(tag.name) from e

    async def delete(self, session: Session, type_id: int) -> None:
        tag = await session.find(TypeTag, type_id)
        if tag is None:
            return
        await session.tx.execute("DELETE FROM pokemon_types WHERE type_id = $1", type_id)
        await session.remove(tag)

    async def _check_name_free(
        self, session: Session, name: str, exclude_id: Optional[int] = None
    ) -> None:
        existing = await self.find_by_name(session, name)
        if existing is not None and existing.id != exclude_id:
            raise self._duplicate(name)

    @staticmethod
    def _duplicate(name: str) -> ConflictError:
        return ConflictError(
            f"TypeTag with name '{name}' already exists",
            code=ErrorCode.DUPLICATE_TYPE_NAME,
        )


class UserService:
    """
    Account user creation with an AccountCreated notification.

    The user row and its outbox record are written through the same
    session, so they commit or roll back together. Delivery happens
    later, in the dispatcher.

    Usage:
        service = UserService(notifier=processor.notify)
        async with unit_of_work(db) as session:
            user = await service.create_user(session, "Red", "red@x.com")
        # committed; the processor has been nudged
    """

    def __init__(self, notifier: Optional[Callable[[], Any]] = None):
        self._notifier = notifier

    async def create_user(self, session: Session, name: str, email: str) -> AccountUser:
        _require_name(name)
        user = await session.persist(AccountUser(name=name, email=email))

        await OutboxRecorder(session).record_pending(
            EventKind.ACCOUNT_CREATED,
            {"user_id": user.id, "name": user.name, "email": user.email},
            aggregate_type=EntityKind.ACCOUNT_USER.value,
            aggregate_id=user.id,
        )
        if self._notifier is not None:
            session.after_commit(self._notifier)

        logger.info(f"AccountUser {user.id} created: {user.name}")
        return user

    async def find_user(self, session: Session, user_id: int) -> Optional[AccountUser]:
        return await session.find(AccountUser, user_id)
