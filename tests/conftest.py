import asyncio
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, AsyncGenerator, Dict, Iterable, List, Optional
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from app.core.cache import CacheService

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError

import app.models  # noqa: F401  (configure all mappers)
from app.main import app
from app.models.assignment_event import AssignmentEvent
from app.schemas.assignment import Actor, OwnershipSnapshot
from app.schemas.common import Role
from app.services.assignment_audit_log import AssignmentAuditLog
from app.services.assignment_history import AssignmentHistoryService
from app.services.assignment_service import AssignmentService
from app.services.assignment_state_machine import AssignmentStateMachine
from app.services.authorization_policy import AuthorizationPolicy
from app.services.workload_guard import WorkloadGuard


def make_user(
    *,
    user_id: Optional[UUID] = None,
    role: Role = Role.assistant,
    is_active: bool = True,
    max_customers_limit: Optional[int] = None,
    permissions: Iterable[str] = (),
):
    """Create a lightweight mock ``User`` row."""
    user = MagicMock()
    user.user_id = user_id or uuid4()
    user.role = role.value
    user.is_active = is_active
    user.max_customers_limit = max_customers_limit
    user.permissions = list(permissions)
    return user


def actor_for(user) -> Actor:
    return Actor(
        id=user.user_id,
        role=Role(user.role),
        is_active=user.is_active,
        permissions=frozenset(user.permissions),
    )


class InMemoryAssignmentStore:
    """Record store + audit store double used by the service tests.

    It implements the customer, user and event repository methods the
    engine calls.  Reads yield to the event loop so concurrent transitions
    interleave; the conditional write does not, so it is atomic on the
    loop just like a single UPDATE is in PostgreSQL.
    """

    def __init__(self) -> None:
        self.customers: Dict[UUID, OwnershipSnapshot] = {}
        self.users: Dict[UUID, Any] = {}
        self.events: List[AssignmentEvent] = []
        self.commits = 0
        self.rollbacks = 0
        self.unavailable = False
        self.fail_audit = False

    # -- fixtures helpers -------------------------------------------------

    def add_user(self, user) -> Any:
        self.users[user.user_id] = user
        return user

    def add_customer(
        self,
        customer_id: Optional[UUID] = None,
        assigned_to: Optional[UUID] = None,
        assigned_by: Optional[UUID] = None,
    ) -> UUID:
        customer_id = customer_id or uuid4()
        self.customers[customer_id] = OwnershipSnapshot(
            customer_id=customer_id,
            assigned_to=assigned_to,
            assigned_by=assigned_by if assigned_to else None,
            assigned_at=datetime.now(timezone.utc) if assigned_to else None,
        )
        return customer_id

    def _check_available(self) -> None:
        if self.unavailable:
            raise OperationalError(
                "SELECT 1", {}, ConnectionRefusedError("connection refused")
            )

    # -- CustomerRepository ------------------------------------------------

    async def find_ownership(self, customer_id: UUID) -> Optional[OwnershipSnapshot]:
        self._check_available()
        await asyncio.sleep(0)
        return self.customers.get(customer_id)

    async def conditional_update_ownership(
        self,
        customer_id: UUID,
        expected_assigned_to: Optional[UUID],
        assigned_to: Optional[UUID],
        assigned_by: Optional[UUID],
        assigned_at: Optional[datetime],
    ) -> bool:
        self._check_available()
        current = self.customers.get(customer_id)
        if current is None or current.assigned_to != expected_assigned_to:
            return False
        self.customers[customer_id] = OwnershipSnapshot(
            customer_id=customer_id,
            assigned_to=assigned_to,
            assigned_by=assigned_by,
            assigned_at=assigned_at,
        )
        return True

    async def count_assigned(self, assistant_id: UUID) -> int:
        self._check_available()
        await asyncio.sleep(0)
        return sum(1 for s in self.customers.values() if s.assigned_to == assistant_id)

    # -- UserRepository ----------------------------------------------------

    async def get_by_id(self, user_id: UUID):
        self._check_available()
        await asyncio.sleep(0)
        return self.users.get(user_id)

    async def find_assistant(self, assistant_id: UUID):
        return await self.get_by_id(assistant_id)

    # -- AssignmentEventRepository ----------------------------------------

    async def append_event(self, **kwargs: Any) -> AssignmentEvent:
        if self.fail_audit:
            raise OperationalError(
                "INSERT INTO assignment_events", {}, OSError("disk full")
            )
        event = AssignmentEvent(**kwargs)
        self.events.append(event)
        return event

    async def list_for_customer(self, customer_id: UUID) -> List[AssignmentEvent]:
        return sorted(
            (e for e in self.events if e.customer_id == customer_id),
            key=lambda e: e.timestamp,
        )

    async def count_for_customer(self, customer_id: UUID) -> int:
        return len([e for e in self.events if e.customer_id == customer_id])

    # -- BaseRepository ----------------------------------------------------

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1


def build_service(
    cache: Optional["CacheService"] = None,
    default_limit: int = 50,
    store_timeout: float = 5.0,
) -> AssignmentService:
    policy = AuthorizationPolicy()
    guard = WorkloadGuard(default_limit=default_limit)
    return AssignmentService(
        policy=policy,
        guard=guard,
        state_machine=AssignmentStateMachine(policy, guard),
        audit_log=AssignmentAuditLog(),
        history=AssignmentHistoryService(cache=cache),
        store_timeout=store_timeout,
    )


@pytest_asyncio.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Yield an ``httpx.AsyncClient`` wired to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Return an ``AsyncMock`` that behaves like ``redis.asyncio.Redis``."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock()
    redis.setex = AsyncMock()
    redis.delete = AsyncMock()
    redis.ping = AsyncMock()
    return redis


@pytest.fixture
def mock_cache(mock_redis) -> "CacheService":
    """Return a ``CacheService`` backed by the mock Redis client."""
    from app.core.cache import CacheService

    return CacheService(redis_client=mock_redis)


@pytest.fixture
def store() -> InMemoryAssignmentStore:
    return InMemoryAssignmentStore()


@pytest.fixture
def admin(store):
    return store.add_user(make_user(role=Role.admin))


@pytest.fixture
def supervisor(store):
    return store.add_user(make_user(role=Role.supervisor))


@pytest.fixture
def assistant_a(store):
    return store.add_user(make_user(role=Role.assistant))


@pytest.fixture
def assistant_b(store):
    return store.add_user(make_user(role=Role.assistant))


@pytest.fixture
def service() -> AssignmentService:
    return build_service()
