import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from app.core.constants import (
    MAX_REASON_LENGTH,
    RECIPIENT_ACTIONS,
    REQUIRES_ASSIGNED,
)
from app.core.exceptions import (
    AssignmentConflictError,
    AssignmentValidationError,
    CapacityExceededError,
    CustomerNotFoundError,
    ForbiddenError,
    InvalidTransitionError,
    RecipientInactiveError,
    RecipientNotFoundError,
)
from app.repositories.customer_repository import CustomerRepository
from app.repositories.user_repository import UserRepository
from app.schemas.assignment import Actor, AppliedTransition, OwnershipSnapshot
from app.schemas.common import AssignmentAction, DenialReason
from app.services.authorization_policy import AuthorizationPolicy
from app.services.workload_guard import WorkloadGuard

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AssignmentStateMachine:
    """Validates and commits one ownership transition for one customer.

    States are ``Unassigned`` and ``Assigned(owner)``:

    ========  =================================================  ====================
    action    precondition                                       effect
    ========  =================================================  ====================
    claim     unassigned; actor is an active assistant           Assigned(actor)
    assign    actor is admin; recipient differs from owner       Assigned(recipient)
    reassign  assigned; recipient differs from owner             Assigned(recipient)
    transfer  as reassign, plus recipient permission check       Assigned(recipient)
    unassign  assigned                                           Unassigned
    ========  =================================================  ====================

    Every action that hands the customer to someone passes the
    :class:`WorkloadGuard` first.  The commit is a single compare-and-set
    on ``assigned_to``; no in-process lock is held between the read and
    the write, so losing the race surfaces as ``AssignmentConflictError``.
    Nothing is retried here.
    """

    def __init__(
        self,
        policy: AuthorizationPolicy,
        guard: WorkloadGuard,
        max_reason_length: int = MAX_REASON_LENGTH,
    ) -> None:
        self._policy = policy
        self._guard = guard
        self._max_reason_length = max_reason_length

    async def apply(
        self,
        customer_id: UUID,
        action: AssignmentAction,
        actor: Actor,
        customer_repo: CustomerRepository,
        user_repo: UserRepository,
        recipient_id: Optional[UUID] = None,
        reason: Optional[str] = None,
    ) -> AppliedTransition:
        """Run one transition, commit it and return the before/after snapshots.

        Raises an :class:`~app.core.exceptions.AssignmentError` subclass
        on any rejection; in that case nothing has been written.
        """
        applied = await self.stage(
            customer_id,
            action,
            actor,
            customer_repo,
            user_repo,
            recipient_id=recipient_id,
            reason=reason,
        )
        await self.commit(applied, actor, customer_repo)
        return applied

    async def stage(
        self,
        customer_id: UUID,
        action: AssignmentAction,
        actor: Actor,
        customer_repo: CustomerRepository,
        user_repo: UserRepository,
        recipient_id: Optional[UUID] = None,
        reason: Optional[str] = None,
    ) -> AppliedTransition:
        """Validate the transition and issue the conditional write, uncommitted.

        Everything up to and including the compare-and-set runs here, so a
        caller may cancel this step and roll back without side effects.
        """
        # 1. Authorization – before touching the store
        decision = self._policy.check(actor, action)
        if not decision.allowed:
            raise ForbiddenError(decision.message, {"reason": decision.reason.value})

        # 2. Input
        recipient_id = self._validate_payload(action, actor, recipient_id, reason)

        # 3. Current state
        prior = await customer_repo.find_ownership(customer_id)
        if prior is None:
            raise CustomerNotFoundError(f"Customer {customer_id} not found")

        # 4. Precondition against the state we just read
        self._check_precondition(action, actor, prior, recipient_id)

        # 5. Recipient eligibility and capacity
        if action in RECIPIENT_ACTIONS:
            await self._check_recipient(action, recipient_id, customer_repo, user_repo)

        # 6. Conditional write
        new = self._next_snapshot(action, actor, prior, recipient_id)
        committed = await customer_repo.conditional_update_ownership(
            customer_id,
            expected_assigned_to=prior.assigned_to,
            assigned_to=new.assigned_to,
            assigned_by=new.assigned_by,
            assigned_at=new.assigned_at,
        )
        if not committed:
            await customer_repo.rollback()
            logger.warning(
                "Conflict: %s on customer %s lost the race (expected owner %s)",
                action.value,
                customer_id,
                prior.assigned_to,
            )
            raise AssignmentConflictError(
                "Customer ownership changed concurrently; another transition "
                "committed first",
                {
                    "conflict": "AlreadyAssigned",
                    "expected_assigned_to": (
                        str(prior.assigned_to) if prior.assigned_to else None
                    ),
                },
            )
        return AppliedTransition(action=action, previous=prior, new=new)

    async def commit(
        self,
        applied: AppliedTransition,
        actor: Actor,
        customer_repo: CustomerRepository,
    ) -> None:
        """Commit a staged transition."""
        await customer_repo.commit()
        logger.info(
            "Customer %s %s by %s: %s -> %s",
            applied.new.customer_id,
            applied.action.value,
            actor.id,
            applied.previous.assigned_to,
            applied.new.assigned_to,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _validate_payload(
        self,
        action: AssignmentAction,
        actor: Actor,
        recipient_id: Optional[UUID],
        reason: Optional[str],
    ) -> Optional[UUID]:
        """Validate the payload and return the effective recipient."""
        # a blank reason is the same as no reason
        if reason is not None and reason.strip():
            if len(reason) > self._max_reason_length:
                raise AssignmentValidationError(
                    f"Reason must be at most {self._max_reason_length} characters",
                    {"length": len(reason), "max_length": self._max_reason_length},
                )

        if action == AssignmentAction.claim:
            if recipient_id is not None and recipient_id != actor.id:
                raise AssignmentValidationError(
                    "A claim always assigns the customer to the claiming assistant"
                )
            return actor.id

        if action == AssignmentAction.unassign:
            return None

        if recipient_id is None:
            raise AssignmentValidationError(
                f"recipient_id is required for {action.value}"
            )
        return recipient_id

    def _check_precondition(
        self,
        action: AssignmentAction,
        actor: Actor,
        prior: OwnershipSnapshot,
        recipient_id: Optional[UUID],
    ) -> None:
        if action == AssignmentAction.claim:
            if prior.assigned_to == actor.id:
                raise InvalidTransitionError("Customer is already assigned to you")
            if prior.assigned_to is not None:
                raise AssignmentConflictError(
                    "Customer is already assigned to another assistant",
                    {"conflict": "AlreadyAssigned"},
                )
            return

        if action in REQUIRES_ASSIGNED and prior.assigned_to is None:
            raise InvalidTransitionError(
                f"Cannot {action.value} customer {prior.customer_id}: "
                "customer is not assigned"
            )

        if recipient_id is not None and prior.assigned_to == recipient_id:
            raise InvalidTransitionError(
                "Customer is already assigned to this assistant"
            )

    async def _check_recipient(
        self,
        action: AssignmentAction,
        recipient_id: UUID,
        customer_repo: CustomerRepository,
        user_repo: UserRepository,
    ) -> None:
        capacity = await self._guard.check_capacity(
            recipient_id, customer_repo, user_repo
        )
        if capacity.reason == DenialReason.RecipientNotFound:
            raise RecipientNotFoundError(f"Assistant {recipient_id} not found")

        # The claimant was already vetted by the policy as an assistant
        receive = None
        if action != AssignmentAction.claim:
            receive = self._policy.can_receive(capacity.assistant)
            if receive.reason == DenialReason.RoleNotPermitted:
                raise AssignmentValidationError(
                    receive.message, {"recipient_id": str(recipient_id)}
                )

        if not capacity.allowed:
            if capacity.reason == DenialReason.RecipientInactive:
                raise RecipientInactiveError(f"Assistant {recipient_id} is not active")
            raise CapacityExceededError(
                f"Assistant {recipient_id} has reached maximum capacity "
                f"of {capacity.limit} customers",
                {"current_count": capacity.current_count, "limit": capacity.limit},
            )

        if (
            action == AssignmentAction.transfer
            and receive is not None
            and not receive.allowed
        ):
            raise ForbiddenError(receive.message, {"reason": receive.reason.value})

    def _next_snapshot(
        self,
        action: AssignmentAction,
        actor: Actor,
        prior: OwnershipSnapshot,
        recipient_id: Optional[UUID],
    ) -> OwnershipSnapshot:
        if action == AssignmentAction.unassign:
            return OwnershipSnapshot(customer_id=prior.customer_id)
        return OwnershipSnapshot(
            customer_id=prior.customer_id,
            assigned_to=recipient_id,
            assigned_by=actor.id,
            assigned_at=_utcnow(),
        )
