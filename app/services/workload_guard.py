import logging
from typing import Optional, Tuple
from uuid import UUID

from app.core.config import settings
from app.repositories.customer_repository import CustomerRepository
from app.repositories.user_repository import UserRepository
from app.schemas.assignment import CapacityDecision
from app.schemas.common import DenialReason, Role

logger = logging.getLogger(__name__)


class WorkloadGuard:
    """Capacity check for an assistant about to receive a customer.

    The assigned count is read from the store on every call and never
    cached: the check has to run immediately before the conditional write
    to narrow the window in which a concurrent assignment could slip
    past the limit.
    """

    def __init__(self, default_limit: Optional[int] = None) -> None:
        self._default_limit = (
            default_limit
            if default_limit is not None
            else settings.DEFAULT_MAX_CUSTOMERS_LIMIT
        )

    def limit_for(self, assistant) -> int:
        """Return the assistant's effective limit (default when unset)."""
        if assistant.max_customers_limit is None:
            return self._default_limit
        return assistant.max_customers_limit

    async def check_capacity(
        self,
        candidate_assistant_id: UUID,
        customer_repo: CustomerRepository,
        user_repo: UserRepository,
    ) -> CapacityDecision:
        """Return whether *candidate_assistant_id* can take one more customer.

        Denials:
        - ``RecipientNotFound``  – no such user
        - ``RecipientInactive``  – account deactivated
        - ``CapacityExceeded``   – ``current_count >= limit``
        """
        assistant = await user_repo.find_assistant(candidate_assistant_id)
        if assistant is None:
            return CapacityDecision(
                allowed=False, reason=DenialReason.RecipientNotFound
            )
        if not assistant.is_active:
            return CapacityDecision(
                allowed=False,
                reason=DenialReason.RecipientInactive,
                assistant=assistant,
            )

        limit = self.limit_for(assistant)
        current_count = await customer_repo.count_assigned(candidate_assistant_id)

        if current_count >= limit:
            logger.warning(
                "Assistant %s at capacity (%d/%d)",
                candidate_assistant_id,
                current_count,
                limit,
            )
            return CapacityDecision(
                allowed=False,
                reason=DenialReason.CapacityExceeded,
                current_count=current_count,
                limit=limit,
                assistant=assistant,
            )

        return CapacityDecision(
            allowed=True,
            current_count=current_count,
            limit=limit,
            assistant=assistant,
        )

    async def workload(
        self,
        assistant_id: UUID,
        customer_repo: CustomerRepository,
        user_repo: UserRepository,
    ) -> Optional[Tuple[int, int]]:
        """Return ``(current_count, limit)``, or ``None`` for anyone but an assistant."""
        assistant = await user_repo.find_assistant(assistant_id)
        if assistant is None or Role(assistant.role) != Role.assistant:
            return None
        current_count = await customer_repo.count_assigned(assistant_id)
        return current_count, self.limit_for(assistant)
