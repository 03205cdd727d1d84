"""
Catalog Seeding

Fills a database with demo data: ten trainers, the eighteen pokemon
types, the first N pokemon from PokeAPI with their types, and a few
random captures per trainer.
"""

import asyncio
import logging
import random
from typing import Any, Dict, List, Optional

import httpx

from .core.catalog import (
    AssociationManager,
    Pokemon,
    PokemonService,
    TrainerService,
    TypeService,
)
from .core.database import DatabaseAdapter, unit_of_work

logger = logging.getLogger(__name__)

POKEAPI_URL = "https://pokeapi.co/api/v2"

TRAINERS = [
    ("Ash Ketchum", "ash@pokemon.com"),
    ("Misty", "misty@pokemon.com"),
    ("Brock", "brock@pokemon.com"),
    ("Gary Oak", "gary@pokemon.com"),
    ("May", "may@pokemon.com"),
    ("Dawn", "dawn@pokemon.com"),
    ("Serena", "serena@pokemon.com"),
    ("Clemont", "clemont@pokemon.com"),
    ("Lillie", "lillie@pokemon.com"),
    ("Red", "red@pokemon.com"),
]

POKEMON_TYPES = [
    "Normal", "Fire", "Water", "Electric", "Grass", "Ice",
    "Fighting", "Poison", "Ground", "Flying", "Psychic", "Bug",
    "Rock", "Ghost", "Dragon", "Dark", "Steel", "Fairy",
]


def parse_pokeapi_pokemon(data: Dict[str, Any]) -> Dict[str, Any]:
    """Map a PokeAPI /pokemon/{id} document to catalog fields."""
    stats = {s["stat"]["name"]: s["base_stat"] for s in data.get("stats", [])}
    return {
        "pokedex_number": data["id"],
        "name": data["name"].capitalize(),
        "hp": stats.get("hp", 0),
        "attack": stats.get("attack", 0),
        "defense": stats.get("defense", 0),
        "speed": stats.get("speed", 0),
        "types": [t["type"]["name"].capitalize() for t in data.get("types", [])],
    }


async def fetch_pokemon(client: httpx.AsyncClient, number: int, retries: int = 3) -> Dict[str, Any]:
    """Fetch one pokemon from PokeAPI, retrying network errors with a linear delay."""
    async def get() -> Dict[str, Any]:
        response = await client.get(f"/pokemon/{number}")
        response.raise_for_status()
        return parse_pokeapi_pokemon(response.json())

    for attempt in range(1, retries):
        try:
            return await get()
        except httpx.TransportError as e:
            logger.debug(f"PokeAPI #{number} attempt {attempt} failed: {e}")
            await asyncio.sleep(attempt)
    return await get()


class CatalogSeeder:
    """
    Populates and clears the catalog.

    Usage:
        async with httpx.AsyncClient(base_url=POKEAPI_URL) as client:
            summary = await CatalogSeeder(db, client).populate(pokemon_count=151)
    """

    def __init__(
        self,
        db: DatabaseAdapter,
        client: httpx.AsyncClient,
        *,
        request_delay: float = 0.1,
        rng: Optional[random.Random] = None,
    ):
        self.db = db
        self.client = client
        self.request_delay = request_delay
        self.rng = rng or random.Random()
        self.trainers = TrainerService()
        self.pokemon = PokemonService()
        self.types = TypeService()
        self.associations = AssociationManager()

    async def populate(self, pokemon_count: int = 151) -> Dict[str, int]:
        summary = {"trainers": 0, "types": 0, "pokemon": 0, "pokemon_errors": 0, "captures": 0}

        async with unit_of_work(self.db) as session:
            existing = {t.email for t in await self.trainers.list_all(session)}
            for name, email in TRAINERS:
                if email not in existing:
                    await self.trainers.create(session, name, email)
                    summary["trainers"] += 1

            for type_name in POKEMON_TYPES:
                if await self.types.find_by_name(session, type_name) is None:
                    await self.types.create(session, type_name)
                    summary["types"] += 1

        async with unit_of_work(self.db) as session:
            known = {p.pokedex_number: p.id for p in await self.pokemon.list_all(session)}

        pokemon_ids: List[int] = list(known.values())
        for number in range(1, pokemon_count + 1):
            if number in known:
                continue
            try:
                data = await fetch_pokemon(self.client, number)
            except httpx.HTTPError as e:
                summary["pokemon_errors"] += 1
                logger.warning(f"PokeAPI fetch failed for #{number}: {e}")
                continue

            types = data.pop("types")
            async with unit_of_work(self.db) as session:
                created = await self.pokemon.create(session, Pokemon(**data))
                await self.pokemon.assign_types(
                    session, created.id, [t for t in types if t in POKEMON_TYPES]
                )
            pokemon_ids.append(created.id)
            summary["pokemon"] += 1
            if self.request_delay:
                await asyncio.sleep(self.request_delay)

        if not pokemon_ids:
            logger.warning("No pokemon available, skipping captures")
            return summary

        async with unit_of_work(self.db) as session:
            for trainer in await self.trainers.list_all(session):
                for _ in range(self.rng.randint(3, 6)):
                    await self.associations.create_capture(
                        session, trainer.id, self.rng.choice(pokemon_ids)
                    )
                    summary["captures"] += 1

        return summary

    async def delete(self) -> Dict[str, int]:
        """Remove captures, pokemon, types and trainers, in that order."""
        summary = {}
        async with unit_of_work(self.db) as session:
            summary["captures"] = await session.tx.execute("DELETE FROM captures")
            await session.tx.execute("DELETE FROM pokemon_types")
            summary["pokemon"] = await session.tx.execute("DELETE FROM pokemon")
            summary["types"] = await session.tx.execute("DELETE FROM type_tags")
            summary["trainers"] = await session.tx.execute("DELETE FROM trainers")
        return summary
