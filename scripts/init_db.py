#!/usr/bin/env python3
"""
Script to prepare the configured database for the car wash CRM.
Creates every table and loads the default wash-type price list.

Usage:
    python scripts/init_db.py          # create tables and seed wash types
    python scripts/init_db.py reset    # drop everything first
"""

import asyncio
import sys

from app.core.config import settings
from app.core.database import AsyncSessionLocal, Base, engine
from app.services.wash_type import WashTypeService


async def init_database(reset: bool = False):
    """Create tables and seed the wash-type catalog."""
    # Register every model on Base.metadata
    import app.models  # noqa: F401

    print(f"Initializing database: {settings.DATABASE_URL.rsplit('@', 1)[-1]}")

    try:
        async with engine.begin() as conn:
            if reset:
                await conn.run_sync(Base.metadata.drop_all)
                print("Dropped existing tables")
            await conn.run_sync(Base.metadata.create_all)

        print("Created all database tables")

        async with AsyncSessionLocal() as db:
            created = await WashTypeService.seed_default_wash_types(db)
        print(f"Seeded {created} wash types")

    except Exception as e:
        print(f"❌ Error initializing database: {e}")
        print("\nMake sure PostgreSQL is running and DATABASE_URL is correct.")
        return False
    finally:
        await engine.dispose()

    print("✅ Database ready!")
    return True


if __name__ == "__main__":
    reset = len(sys.argv) > 1 and sys.argv[1] == "reset"
    ok = asyncio.run(init_database(reset=reset))
    sys.exit(0 if ok else 1)
