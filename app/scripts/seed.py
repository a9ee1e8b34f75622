"""Sample data seeder for the customer assignment engine.

Creates one admin, one supervisor, a handful of assistants (one with a
capacity limit of 1 so the limit can be exercised by hand) and a set of
unassigned customers.  Safe to re-run: existing rows are truncated first.
"""

import asyncio

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings
from app.models import Customer, User
from app.schemas.common import Role

FIRST_NAMES = ["Amira", "Bilal", "Chen", "Dana", "Emre", "Farah", "Goran", "Hana"]
LAST_NAMES = ["Khan", "Lopez", "Meyer", "Novak", "Osei", "Park", "Quinn", "Rossi"]

ASSISTANTS = [
    # (name, max_customers_limit); None means the configured default
    ("Assistant One", None),
    ("Assistant Two", None),
    ("Assistant Three", 10),
    ("Assistant Capped", 1),
]

CUSTOMER_COUNT = 24


async def seed():
    engine = create_async_engine(settings.DATABASE_URL, echo=False)
    session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with session_maker() as session:
        print("Seeding customer assignment sample data")

        # The audit trigger blocks DELETE, so TRUNCATE is the only way to
        # reset assignment_events.
        await session.execute(
            text("TRUNCATE TABLE assignment_events, customers, users CASCADE")
        )
        await session.commit()
        print("Cleared existing data")

        admin = User(
            full_name="Admin User", email="admin@example.com", role=Role.admin.value
        )
        supervisor = User(
            full_name="Supervisor User",
            email="supervisor@example.com",
            role=Role.supervisor.value,
        )
        session.add_all([admin, supervisor])

        assistants = []
        for i, (name, limit) in enumerate(ASSISTANTS, 1):
            assistant = User(
                full_name=name,
                email=f"assistant{i}@example.com",
                role=Role.assistant.value,
                max_customers_limit=limit,
            )
            session.add(assistant)
            assistants.append(assistant)
        await session.flush()
        print(f"Created admin, supervisor and {len(assistants)} assistants")

        for i in range(CUSTOMER_COUNT):
            session.add(
                Customer(
                    first_name=FIRST_NAMES[i % len(FIRST_NAMES)],
                    last_name=LAST_NAMES[(i // len(FIRST_NAMES)) % len(LAST_NAMES)],
                    email=f"customer{i + 1}@example.com",
                )
            )
        await session.commit()
        print(f"Created {CUSTOMER_COUNT} unassigned customers")

        for user in [admin, supervisor, *assistants]:
            print(f"  {user.role:<10} {user.user_id}  {user.email}")

    await engine.dispose()
    print("Seeding completed successfully")


if __name__ == "__main__":
    asyncio.run(seed())
