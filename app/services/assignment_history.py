import logging
from typing import Optional
from uuid import UUID

from app.core.cache import CacheService
from app.core.config import settings
from app.repositories.assignment_event_repository import AssignmentEventRepository
from app.schemas.assignment import AssignmentEventOut, AssignmentHistoryResponse

logger = logging.getLogger(__name__)

_HISTORY_KEY_PREFIX = "assignment_history"


class AssignmentHistoryService:
    """Read side of the audit trail, cached in Redis.

    The cache entry for a customer is dropped by the assignment façade
    after every appended event, so a hit is never older than the last
    committed transition (modulo the TTL if the delete itself failed).
    """

    def __init__(self, cache: Optional[CacheService] = None) -> None:
        self._cache: CacheService = cache or CacheService()

    @staticmethod
    def cache_key(customer_id: UUID) -> str:
        return f"{_HISTORY_KEY_PREFIX}:{customer_id}"

    async def get_history(
        self, customer_id: UUID, event_repo: AssignmentEventRepository
    ) -> AssignmentHistoryResponse:
        """Return the customer's events, oldest first."""
        key = self.cache_key(customer_id)
        cached = await self._cache.get_json(key)
        if cached is not None:
            return AssignmentHistoryResponse.model_validate(cached)

        events = await event_repo.list_for_customer(customer_id)
        history = AssignmentHistoryResponse(
            customer_id=customer_id,
            total=len(events),
            events=[AssignmentEventOut.model_validate(e) for e in events],
        )
        await self._cache.set_json(
            key, history.model_dump(mode="json"), ttl=settings.REDIS_CACHE_TTL
        )
        return history

    async def invalidate(self, customer_id: UUID) -> None:
        await self._cache.delete(self.cache_key(customer_id))
