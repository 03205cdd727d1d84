"""
Catalog aggregates and services.

Usage:
    from pokedex.core.catalog import AssociationManager, TrainerService

    async with unit_of_work(db) as session:
        ash = await TrainerService().create(session, "Ash", "ash@pokemon.com")
        await AssociationManager().create_capture(session, ash.id, pikachu_id)
"""

from .models import AccountUser, Capture, CaptureOwner, EntityKind, Pokemon, Trainer, TypeTag
from .captures import AssociationManager
from .services import PokemonService, TrainerService, TypeService, UserService

__all__ = [
    "AccountUser",
    "Capture",
    "CaptureOwner",
    "EntityKind",
    "Pokemon",
    "Trainer",
    "TypeTag",
    "AssociationManager",
    "PokemonService",
    "TrainerService",
    "TypeService",
    "UserService",
]
