import logging
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from redis.asyncio import Redis

from app.core.config import settings
from app.core.database import get_db
from app.schemas.assignment import Actor
from app.schemas.common import Role
from app.services.authorization_policy import AuthorizationPolicy
from app.services.workload_guard import WorkloadGuard

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Redis client factory
# ---------------------------------------------------------------------------


async def get_redis_client() -> Redis:
    """Get an async Redis client instance using connection pooling."""
    try:
        client = Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
        await client.ping()
        return client
    except Exception:
        logger.warning("Redis unavailable – history caching disabled for this request")
        return None  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Repository factory functions (one per repository, each gets the shared db)
# ---------------------------------------------------------------------------


async def get_customer_repo(
    db: AsyncSession = Depends(get_db),
):
    from app.repositories.customer_repository import CustomerRepository

    return CustomerRepository(db)


async def get_user_repo(
    db: AsyncSession = Depends(get_db),
):
    from app.repositories.user_repository import UserRepository

    return UserRepository(db)


async def get_event_repo(
    db: AsyncSession = Depends(get_db),
):
    from app.repositories.assignment_event_repository import (
        AssignmentEventRepository,
    )

    return AssignmentEventRepository(db)


# ---------------------------------------------------------------------------
# Cache service factory
# ---------------------------------------------------------------------------


async def get_cache_service(
    redis_client: Redis = Depends(get_redis_client),
):
    """Build a :class:`CacheService` backed by the shared Redis client."""
    from app.core.cache import CacheService

    return CacheService(redis_client=redis_client)


# ---------------------------------------------------------------------------
# Service factory functions
# ---------------------------------------------------------------------------


async def get_authorization_policy() -> AuthorizationPolicy:
    return AuthorizationPolicy()


async def get_workload_guard() -> WorkloadGuard:
    return WorkloadGuard(default_limit=settings.DEFAULT_MAX_CUSTOMERS_LIMIT)


async def get_history_service(
    cache=Depends(get_cache_service),
):
    """Build an :class:`AssignmentHistoryService` with the request cache."""
    from app.services.assignment_history import AssignmentHistoryService

    return AssignmentHistoryService(cache=cache)


async def get_assignment_service(
    policy: AuthorizationPolicy = Depends(get_authorization_policy),
    guard: WorkloadGuard = Depends(get_workload_guard),
    history=Depends(get_history_service),
):
    """Build the :class:`AssignmentService` façade with injected collaborators."""
    from app.services.assignment_audit_log import AssignmentAuditLog
    from app.services.assignment_service import AssignmentService
    from app.services.assignment_state_machine import AssignmentStateMachine

    state_machine = AssignmentStateMachine(policy, guard)
    return AssignmentService(
        policy=policy,
        guard=guard,
        state_machine=state_machine,
        audit_log=AssignmentAuditLog(),
        history=history,
        store_timeout=settings.ASSIGNMENT_STORE_TIMEOUT_SECONDS,
    )


# ---------------------------------------------------------------------------
# Actor resolution
# ---------------------------------------------------------------------------


async def get_current_actor(
    x_user_id: Optional[str] = Header(None),
    user_repo=Depends(get_user_repo),
) -> Actor:
    """Resolve the calling user from the ``X-User-Id`` header.

    Stands in for a real authentication layer: the header is trusted and
    only checked against the ``users`` table.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid X-User-Id header")

    user = await user_repo.get_by_id(user_id)
    if user is None:
        logger.warning("Security: unknown user %s", user_id)
        raise HTTPException(status_code=401, detail="Unknown user")
    if not user.is_active:
        logger.warning("Security: deactivated user %s attempted access", user_id)
        raise HTTPException(status_code=403, detail="User account is deactivated")

    return Actor(
        id=user.user_id,
        role=Role(user.role),
        is_active=user.is_active,
        permissions=frozenset(user.permissions or []),
    )
