import asyncio
import logging
from typing import List, Optional, Union
from uuid import UUID

from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from app.core.config import settings
from app.core.constants import VIEW_ASSIGNMENT_HISTORY, VIEW_WORKLOAD
from app.core.exceptions import (
    AssignmentEngineError,
    AssignmentError,
    AuditWriteFailedError,
    CustomerNotFoundError,
    ForbiddenError,
    RecipientNotFoundError,
    StoreUnavailableError,
)
from app.repositories.assignment_event_repository import AssignmentEventRepository
from app.repositories.customer_repository import CustomerRepository
from app.repositories.user_repository import UserRepository
from app.schemas.assignment import (
    Actor,
    AppliedTransition,
    AssignmentHistoryResponse,
    OwnershipSnapshot,
    TransitionFailure,
    TransitionPayload,
    TransitionSuccess,
    TransitionWarning,
    WorkloadResponse,
)
from app.schemas.common import AssignmentAction, CustomerOperation, Role
from app.services.assignment_audit_log import AssignmentAuditLog
from app.services.assignment_history import AssignmentHistoryService
from app.services.assignment_state_machine import AssignmentStateMachine
from app.services.authorization_policy import AuthorizationPolicy
from app.services.workload_guard import WorkloadGuard

logger = logging.getLogger(__name__)

TransitionResult = Union[TransitionSuccess, TransitionFailure]

# Errors that mean the record store could not be reached in time.  They are
# converted to StoreUnavailable exactly once, here.
TRANSIENT_STORE_ERRORS = (
    OperationalError,
    InterfaceError,
    PoolTimeoutError,
    asyncio.TimeoutError,
    ConnectionError,
)


def _failure(exc: AssignmentEngineError) -> TransitionFailure:
    return TransitionFailure(
        error_kind=exc.error_kind, message=exc.detail, details=exc.details
    )


class AssignmentService:
    """Single entry point for customer-assignment transitions.

    Wires the policy, the workload guard, the state machine and the audit
    log together and turns every domain rejection into a
    :class:`TransitionFailure` value.  Only the HTTP layer decides how a
    failure maps to a status code.
    """

    def __init__(
        self,
        policy: AuthorizationPolicy,
        guard: WorkloadGuard,
        state_machine: AssignmentStateMachine,
        audit_log: AssignmentAuditLog,
        history: AssignmentHistoryService,
        store_timeout: Optional[float] = None,
    ) -> None:
        self._policy = policy
        self._guard = guard
        self._state_machine = state_machine
        self._audit_log = audit_log
        self._history = history
        self._store_timeout = (
            store_timeout
            if store_timeout is not None
            else settings.ASSIGNMENT_STORE_TIMEOUT_SECONDS
        )

    async def transition(
        self,
        customer_id: UUID,
        actor: Actor,
        action: AssignmentAction,
        payload: Optional[TransitionPayload],
        customer_repo: CustomerRepository,
        user_repo: UserRepository,
        event_repo: AssignmentEventRepository,
    ) -> TransitionResult:
        """Apply *action* to the customer and record it in the audit trail."""
        payload = payload or TransitionPayload()
        reason = payload.reason if payload.reason and payload.reason.strip() else None

        # The timeout covers the uncommitted work only; a sent COMMIT is awaited.
        try:
            applied: AppliedTransition = await asyncio.wait_for(
                self._state_machine.stage(
                    customer_id,
                    action,
                    actor,
                    customer_repo,
                    user_repo,
                    recipient_id=payload.recipient_id,
                    reason=reason,
                ),
                timeout=self._store_timeout,
            )
        except AssignmentError as exc:
            return _failure(exc)
        except TRANSIENT_STORE_ERRORS as exc:
            return await self._store_failure(action, customer_id, exc, customer_repo)

        try:
            await self._state_machine.commit(applied, actor, customer_repo)
        except TRANSIENT_STORE_ERRORS as exc:
            return await self._store_failure(action, customer_id, exc, customer_repo)

        warnings: List[TransitionWarning] = []
        audit_event_id: Optional[UUID] = None
        try:
            event = await self._audit_log.append(
                customer_id,
                actor,
                action,
                applied.previous,
                applied.new,
                event_repo,
                reason=reason,
                request_metadata=payload.request_metadata,
            )
            audit_event_id = event.event_id
            await self._history.invalidate(customer_id)
        except AuditWriteFailedError as exc:
            warnings.append(
                TransitionWarning(error_kind=exc.error_kind, message=exc.detail)
            )

        new = applied.new
        return TransitionSuccess(
            customer_id=customer_id,
            assigned_to=new.assigned_to,
            assignment_status=new.assignment_status,
            assigned_at=new.assigned_at,
            audit_event_id=audit_event_id,
            warnings=warnings,
        )

    async def authorize_access(
        self,
        customer_id: UUID,
        actor: Actor,
        operation: CustomerOperation,
        customer_repo: CustomerRepository,
    ) -> Union[OwnershipSnapshot, TransitionFailure]:
        """Gate a ``read``/``update`` on one customer record.

        Returns the current ownership snapshot when *actor* may proceed.
        """
        try:
            snapshot = await self._fetch_ownership(customer_id, customer_repo)
            decision = self._policy.check(
                actor, operation, is_resource_owner=snapshot.assigned_to == actor.id
            )
            if not decision.allowed:
                raise ForbiddenError(
                    decision.message, {"reason": decision.reason.value}
                )
        except AssignmentEngineError as exc:
            return _failure(exc)
        return snapshot

    async def get_history(
        self,
        customer_id: UUID,
        actor: Actor,
        customer_repo: CustomerRepository,
        event_repo: AssignmentEventRepository,
    ) -> Union[AssignmentHistoryResponse, TransitionFailure]:
        """Audit trail for a customer: oversight roles or the owning assistant."""
        try:
            snapshot = await self._fetch_ownership(customer_id, customer_repo)
            owns = actor.role == Role.assistant and snapshot.assigned_to == actor.id
            if not owns and not self._policy.holds(actor, VIEW_ASSIGNMENT_HISTORY):
                logger.warning(
                    "Security: history of customer %s denied for user %s",
                    customer_id,
                    actor.id,
                )
                raise ForbiddenError("Not allowed to view this assignment history")
            return await self._history.get_history(customer_id, event_repo)
        except AssignmentEngineError as exc:
            return _failure(exc)
        except TRANSIENT_STORE_ERRORS:
            logger.error("Store unavailable reading history of %s", customer_id)
            return _failure(StoreUnavailableError())

    async def get_workload(
        self,
        assistant_id: UUID,
        actor: Actor,
        customer_repo: CustomerRepository,
        user_repo: UserRepository,
    ) -> Union[WorkloadResponse, TransitionFailure]:
        """Current load of an assistant: oversight roles or the assistant itself."""
        if actor.id != assistant_id and not self._policy.holds(actor, VIEW_WORKLOAD):
            logger.warning(
                "Security: workload of %s denied for user %s", assistant_id, actor.id
            )
            return _failure(ForbiddenError("Not allowed to view this workload"))
        try:
            workload = await self._guard.workload(assistant_id, customer_repo, user_repo)
        except TRANSIENT_STORE_ERRORS:
            logger.error("Store unavailable reading workload of %s", assistant_id)
            return _failure(StoreUnavailableError())
        if workload is None:
            return _failure(RecipientNotFoundError(f"Assistant {assistant_id} not found"))
        current_count, limit = workload
        return WorkloadResponse(
            assistant_id=assistant_id,
            current_count=current_count,
            limit=limit,
            available=max(limit - current_count, 0),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fetch_ownership(
        self, customer_id: UUID, customer_repo: CustomerRepository
    ) -> OwnershipSnapshot:
        try:
            snapshot = await customer_repo.find_ownership(customer_id)
        except TRANSIENT_STORE_ERRORS as exc:
            raise StoreUnavailableError() from exc
        if snapshot is None:
            raise CustomerNotFoundError(f"Customer {customer_id} not found")
        return snapshot

    async def _store_failure(
        self,
        action: AssignmentAction,
        customer_id: UUID,
        exc: BaseException,
        customer_repo: CustomerRepository,
    ) -> TransitionFailure:
        logger.error(
            "Store unavailable during %s on customer %s: %r",
            action.value,
            customer_id,
            exc,
        )
        await self._rollback_quietly(customer_repo)
        return _failure(StoreUnavailableError())

    @staticmethod
    async def _rollback_quietly(customer_repo: CustomerRepository) -> None:
        try:
            await customer_repo.rollback()
        except (SQLAlchemyError, OSError):
            logger.warning("Rollback after store failure also failed")

