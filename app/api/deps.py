"""API-layer dependency functions.

Re-exports all dependency factories from ``app.dependencies`` so that
endpoint modules only need to import from ``app.api.deps``.
"""

from app.dependencies import (
    # Repository factories
    get_customer_repo,
    get_user_repo,
    get_event_repo,
    # Service factories
    get_authorization_policy,
    get_workload_guard,
    get_history_service,
    get_assignment_service,
    # Actor
    get_current_actor,
    # Redis
    get_redis_client,
    get_cache_service,
)

__all__ = [
    "get_customer_repo",
    "get_user_repo",
    "get_event_repo",
    "get_authorization_policy",
    "get_workload_guard",
    "get_history_service",
    "get_assignment_service",
    "get_current_actor",
    "get_redis_client",
    "get_cache_service",
]
