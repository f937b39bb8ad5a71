"""Script to initialize the database and seed a small directory."""

import asyncio

from sqlalchemy import select, text

from coordinator.config import settings
from coordinator.core.security import issue_actor_token
from coordinator.database import engine
from coordinator.models import metadata, providers, requesters
from coordinator.schemas.auth import Actor, ActorRole

SEED_PROVIDERS = [
    {"name": "Ms. Dana Reyes", "email": "dana.reyes@counseling.example.edu"},
    {"name": "Mr. Paolo Santos", "email": "paolo.santos@counseling.example.edu"},
]

SEED_REQUESTERS = [
    {
        "name": "Lea Cruz",
        "id_number": "02000000001",
        "section": "STEM-101",
        "contact_phone": "0917-000-0001",
        "identity_token": "badge-0001",
    },
    {
        "name": "Marco Villanueva",
        "id_number": "02000000002",
        "section": "ABM-202",
        "contact_phone": "0917-000-0002",
        "identity_token": "badge-0002",
    },
]


async def init_db() -> None:
    """Create all tables, then add seed rows that are not there yet."""
    async with engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))

        await conn.run_sync(metadata.create_all)

        existing = set((await conn.execute(select(providers.c.email))).scalars())
        for row in SEED_PROVIDERS:
            if row["email"] not in existing:
                await conn.execute(providers.insert().values(**row))

        existing = set((await conn.execute(select(requesters.c.id_number))).scalars())
        for row in SEED_REQUESTERS:
            if row["id_number"] not in existing:
                await conn.execute(requesters.insert().values(**row))

        print("✓ Database initialized successfully!")

        if settings.is_production:
            return

        # Bearer tokens for trying the API against the seed directory
        seeded = [
            (ActorRole.PROVIDER, select(providers.c.id, providers.c.name)),
            (ActorRole.REQUESTER, select(requesters.c.id, requesters.c.name)),
        ]
        for role, query in seeded:
            for row in (await conn.execute(query)).all():
                token = issue_actor_token(Actor(id=row.id, role=role, name=row.name))
                print(f"  {role.value:<9} {row.name}: {token}")


if __name__ == "__main__":
    asyncio.run(init_db())
