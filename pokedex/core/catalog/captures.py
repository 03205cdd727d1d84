"""
Association Manager

Owns the capture join entity and keeps both sides' capture views
consistent within a unit of work.

Invariants:
- A capture is only created when its trainer and pokemon both exist
  (trainer checked first).
- A trainer's or pokemon's loaded capture view reflects every capture
  created or deleted through this manager in the same session, without a
  re-query.
"""

import logging
from typing import List, Optional, Type

from ..database.session import Session
from ..exceptions import NotFoundError
from .models import Capture, CaptureOwner, EntityKind, Pokemon, Trainer

logger = logging.getLogger(__name__)


class AssociationManager:
    """
    Creates, reads and deletes captures.

    Usage:
        async with unit_of_work(db) as session:
            capture = await associations.create_capture(session, trainer_id, pokemon_id)
            captures = await associations.list_captures_by_trainer(session, trainer_id)
    """

    async def create_capture(self, session: Session, trainer_id: int, pokemon_id: int) -> Capture:
        """
        Record that a trainer caught a pokemon.

        Raises:
            NotFoundError: the trainer (checked first) or pokemon is absent.
                Nothing is written in that case.
        """
        trainer = await session.find(Trainer, trainer_id)
        if trainer is None:
            raise NotFoundError(EntityKind.TRAINER, trainer_id)

        pokemon = await session.find(Pokemon, pokemon_id)
        if pokemon is None:
            raise NotFoundError(EntityKind.POKEMON, pokemon_id)

        # Views must be warm before the insert so the new row is not loaded twice
        await self._ensure_view(session, trainer)
        await self._ensure_view(session, pokemon)

        capture = await session.persist(Capture(trainer_id=trainer.id, pokemon_id=pokemon.id))
        trainer.captures.append(capture)
        pokemon.captures.append(capture)

        logger.info(
            f"Capture {capture.id} created: trainer={trainer.id} pokemon={pokemon.id}"
        )
        return capture

    async def get_capture(self, session: Session, capture_id: int) -> Optional[Capture]:
        return await session.find(Capture, capture_id)

    async def list_captures_by_trainer(self, session: Session, trainer_id: int) -> List[Capture]:
        """Captures owned by a trainer; empty when the trainer is absent."""
        return await self._owner_view(session, Trainer, trainer_id)

    async def list_captures_by_pokemon(self, session: Session, pokemon_id: int) -> List[Capture]:
        """Captures of a pokemon; empty when the pokemon is absent."""
        return await self._owner_view(session, Pokemon, pokemon_id)

    async def list_captures(self, session: Session) -> List[Capture]:
        return await session.list_all(Capture)

    async def delete_capture(self, session: Session, capture_id: int) -> None:
        """Delete a capture. An absent id is a no-op."""
        capture = await session.find(Capture, capture_id)
        if capture is None:
            return

        await session.remove(capture)
        for owner_type, owner_id in ((Trainer, capture.trainer_id), (Pokemon, capture.pokemon_id)):
            owner = session.get_loaded(owner_type, owner_id)
            if owner is not None and owner.captures_loaded:
                owner.captures = [c for c in owner.captures if c.id != capture.id]

        logger.info(f"Capture {capture_id} deleted")

    async def delete_captures_of(self, session: Session, owner: CaptureOwner) -> int:
        """Delete every capture referencing owner. Returns how many were removed."""
        await self._ensure_view(session, owner)
        captures = list(owner.captures)
        for capture in captures:
            await self.delete_capture(session, capture.id)
        return len(captures)

    async def _owner_view(
        self, session: Session, owner_type: Type[CaptureOwner], owner_id: int
    ) -> List[Capture]:
        owner = await session.find(owner_type, owner_id)
        if owner is None:
            return []
        await self._ensure_view(session, owner)
        return list(owner.captures)

    async def _ensure_view(self, session: Session, owner: CaptureOwner) -> None:
        if owner.captures_loaded:
            return
        captures = await session.select(
            Capture, f"{owner.capture_column} = $1", owner.id, order_by="captured_at, id"
        )
        owner.load_captures(captures)
