#!/usr/bin/env python3
"""
Populate or clear the Pokedex catalog database.

Usage:
    python scripts/populate_db.py populate
    python scripts/populate_db.py delete
    python scripts/populate_db.py repopulate --count 50

The database is chosen by DATABASE_BACKEND / SQLITE_PATH / DATABASE_URL.
"""

import argparse
import asyncio

import httpx

from pokedex.core.database import close_database, ensure_schema, get_database
from pokedex.core.observability import configure_logging
from pokedex.seed import POKEAPI_URL, CatalogSeeder


async def run(command: str, count: int, pokeapi_url: str) -> None:
    db = await get_database()
    await ensure_schema(db)

    try:
        async with httpx.AsyncClient(base_url=pokeapi_url, timeout=10.0) as client:
            seeder = CatalogSeeder(db, client)

            if command in ("delete", "repopulate"):
                removed = await seeder.delete()
                print("Deleted:")
                for name, value in removed.items():
                    print(f"   - {name}: {value}")

            if command in ("populate", "repopulate"):
                created = await seeder.populate(pokemon_count=count)
                print("Created:")
                for name, value in created.items():
                    print(f"   - {name}: {value}")
    finally:
        await close_database()


def main():
    parser = argparse.ArgumentParser(description="Populate the Pokedex catalog")
    parser.add_argument("command", choices=["populate", "delete", "repopulate"])
    parser.add_argument("--count", type=int, default=151, help="Pokemon to fetch from PokeAPI")
    parser.add_argument("--pokeapi-url", default=POKEAPI_URL)
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args()

    configure_logging(level=args.log_level, structured=False)
    asyncio.run(run(args.command, args.count, args.pokeapi_url))


if __name__ == "__main__":
    main()
