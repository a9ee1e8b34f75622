"""Repository and HTTP tests against a real PostgreSQL database.

Skipped when PostgreSQL is not reachable (see ``TEST_PG_*`` variables).
"""

import asyncio
import os
from typing import AsyncGenerator
from uuid import uuid4

import asyncpg
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from app.models.base import Base

_PG_HOST = os.getenv("TEST_PG_HOST", "localhost")
_PG_PORT = int(os.getenv("TEST_PG_PORT", "5433"))
_PG_USER = os.getenv("TEST_PG_USER", "postgres")
_PG_PASS = os.getenv("TEST_PG_PASSWORD", "postgres")
_TEST_DB = "customer_assignment_test_db"

_TEST_DB_URL = (
    f"postgresql+asyncpg://{_PG_USER}:{_PG_PASS}@{_PG_HOST}:{_PG_PORT}/{_TEST_DB}"
)

# NullPool: every test runs on its own event loop
_TEST_ENGINE = create_async_engine(_TEST_DB_URL, echo=False, poolclass=NullPool)

_TestSessionLocal = async_sessionmaker(
    _TEST_ENGINE,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def _override_get_db():
    """Yield a test-scoped async session."""
    async with _TestSessionLocal() as session:
        yield session


@pytest_asyncio.fixture(autouse=True)
async def _ensure_pg_database():
    """Create the test database if needed; skip when PostgreSQL is down."""
    try:
        conn = await asyncpg.connect(
            user=_PG_USER,
            password=_PG_PASS,
            host=_PG_HOST,
            port=_PG_PORT,
            database="postgres",
        )
        exists = await conn.fetchval(
            "SELECT 1 FROM pg_database WHERE datname = $1", _TEST_DB
        )
        if not exists:
            await conn.execute(f'CREATE DATABASE "{_TEST_DB}"')
        await conn.close()
    except (OSError, asyncpg.PostgresError) as exc:
        pytest.skip(f"PostgreSQL not available ({_PG_HOST}:{_PG_PORT}): {exc}")


@pytest_asyncio.fixture(autouse=True)
async def _setup_database(_ensure_pg_database):
    """Create all tables before each test and drop them after."""
    async with _TEST_ENGINE.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with _TEST_ENGINE.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    async with _TestSessionLocal() as session:
        yield session


@pytest_asyncio.fixture
async def integration_client() -> AsyncGenerator[AsyncClient, None]:
    """HTTP client wired to the FastAPI app with overridden DB dependency."""
    from app.core.database import get_db
    from app.dependencies import get_redis_client
    from app.main import app

    async def _no_redis():
        return None

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_redis_client] = _no_redis
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def _seed_user(session: AsyncSession, **overrides):
    """Insert a user row and return its UUID."""
    from app.models.user import User

    defaults = {
        "user_id": uuid4(),
        "full_name": "Test Assistant",
        "email": f"user_{uuid4().hex[:8]}@test.com",
        "role": "assistant",
        "is_active": True,
        "permissions": [],
    }
    defaults.update(overrides)
    session.add(User(**defaults))
    await session.commit()
    return defaults["user_id"]


async def _seed_customer(session: AsyncSession, **overrides):
    """Insert a customer row and return its UUID."""
    from app.models.customer import Customer

    defaults = {
        "customer_id": uuid4(),
        "first_name": "Test",
        "last_name": "Customer",
        "email": f"customer_{uuid4().hex[:8]}@test.com",
    }
    defaults.update(overrides)
    session.add(Customer(**defaults))
    await session.commit()
    return defaults["customer_id"]


class TestCustomerRepositoryIntegration:
    @pytest.mark.asyncio
    async def test_conditional_update_succeeds_once(self, db_session: AsyncSession):
        from app.repositories.customer_repository import CustomerRepository

        assistant_id = await _seed_user(db_session)
        customer_id = await _seed_customer(db_session)
        repo = CustomerRepository(db_session)

        first = await repo.conditional_update_ownership(
            customer_id, None, assistant_id, assistant_id, None
        )
        await repo.commit()
        second = await repo.conditional_update_ownership(
            customer_id, None, assistant_id, assistant_id, None
        )
        await repo.commit()

        assert first is True
        assert second is False
        snapshot = await repo.find_ownership(customer_id)
        assert snapshot.assigned_to == assistant_id
        assert await repo.count_assigned(assistant_id) == 1

    @pytest.mark.asyncio
    async def test_concurrent_sessions_one_winner(self, db_session: AsyncSession):
        """Two sessions racing the same compare-and-set: exactly one row update."""
        from app.repositories.customer_repository import CustomerRepository

        a1 = await _seed_user(db_session)
        a2 = await _seed_user(db_session)
        customer_id = await _seed_customer(db_session)

        async def claim(assistant_id):
            async with _TestSessionLocal() as session:
                repo = CustomerRepository(session)
                ok = await repo.conditional_update_ownership(
                    customer_id, None, assistant_id, assistant_id, None
                )
                await repo.commit()
                return ok

        results = await asyncio.gather(claim(a1), claim(a2))
        assert sorted(results) == [False, True]

    @pytest.mark.asyncio
    async def test_assignment_status_expression(self, db_session: AsyncSession):
        from sqlalchemy import select

        from app.models.customer import Customer

        assistant_id = await _seed_user(db_session)
        await _seed_customer(db_session)
        await _seed_customer(db_session, assigned_to=assistant_id)

        result = await db_session.execute(
            select(Customer.assignment_status).order_by(Customer.assignment_status)
        )
        assert result.scalars().all() == ["assigned", "unassigned"]


class TestAssignmentEventImmutability:
    @pytest.mark.asyncio
    async def test_orm_update_is_rejected(self, db_session: AsyncSession):
        from app.repositories.assignment_event_repository import (
            AssignmentEventRepository,
        )

        actor_id = await _seed_user(db_session, role="admin")
        customer_id = await _seed_customer(db_session)
        repo = AssignmentEventRepository(db_session)
        event = await repo.append_event(
            event_id=uuid4(),
            customer_id=customer_id,
            action_by=actor_id,
            action="assigned",
            previous_assignment={},
            new_assignment={},
        )
        await repo.commit()

        event.reason = "rewritten"
        with pytest.raises(ValueError):
            await db_session.flush()
        await db_session.rollback()
        assert await repo.count_for_customer(customer_id) == 1


class TestTransitionEndpointIntegration:
    @pytest.mark.asyncio
    async def test_claim_then_history(
        self, integration_client: AsyncClient, db_session: AsyncSession
    ):
        assistant_id = await _seed_user(db_session)
        supervisor_id = await _seed_user(db_session, role="supervisor")
        customer_id = await _seed_customer(db_session)

        response = await integration_client.post(
            f"/api/v1/customers/{customer_id}/assignment/claim",
            headers={"X-User-Id": str(assistant_id)},
            json={"reason": "First contact"},
        )
        assert response.status_code == 200
        assert response.json()["assigned_to"] == str(assistant_id)

        response = await integration_client.get(
            f"/api/v1/customers/{customer_id}/assignment/history",
            headers={"X-User-Id": str(supervisor_id)},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["events"][0]["action"] == "claimed"
        assert body["events"][0]["reason"] == "First contact"

    @pytest.mark.asyncio
    async def test_capacity_limit_enforced(
        self, integration_client: AsyncClient, db_session: AsyncSession
    ):
        assistant_id = await _seed_user(db_session, max_customers_limit=1)
        await _seed_customer(db_session, assigned_to=assistant_id)
        customer_id = await _seed_customer(db_session)

        response = await integration_client.post(
            f"/api/v1/customers/{customer_id}/assignment/claim",
            headers={"X-User-Id": str(assistant_id)},
        )
        assert response.status_code == 400
        assert response.json()["error_kind"] == "CapacityExceeded"
