from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.constants import ERROR_STATUS_CODES
from app.core.rate_limit import limiter
from app.schemas.assignment import (
    Actor,
    AssignmentHistoryResponse,
    OwnershipSnapshot,
    RequestMetadata,
    TransitionFailure,
    TransitionPayload,
    TransitionRequest,
    TransitionSuccess,
)
from app.schemas.common import AssignmentAction, CustomerOperation
from app.services.assignment_service import AssignmentService
from app.repositories.assignment_event_repository import AssignmentEventRepository
from app.repositories.customer_repository import CustomerRepository
from app.repositories.user_repository import UserRepository
from app.api.deps import (
    get_assignment_service,
    get_current_actor,
    get_customer_repo,
    get_event_repo,
    get_user_repo,
)

router = APIRouter(prefix="/customers", tags=["Customer Assignment"])


def failure_response(failure: TransitionFailure) -> JSONResponse:
    """Render a :class:`TransitionFailure` with its mapped status code."""
    return JSONResponse(
        status_code=ERROR_STATUS_CODES[failure.error_kind],
        content=failure.model_dump(mode="json"),
    )


@router.post(
    "/{customer_id}/assignment/{action}",
    response_model=TransitionSuccess,
    responses={
        400: {"model": TransitionFailure},
        403: {"model": TransitionFailure},
        404: {"model": TransitionFailure},
        409: {"model": TransitionFailure},
        422: {"model": TransitionFailure},
        503: {"model": TransitionFailure},
    },
)
@limiter.limit(settings.ASSIGNMENT_RATE_LIMIT)
async def transition_assignment(
    request: Request,
    customer_id: UUID,
    action: AssignmentAction,
    request_body: Optional[TransitionRequest] = None,
    actor: Actor = Depends(get_current_actor),
    service: AssignmentService = Depends(get_assignment_service),
    customer_repo: CustomerRepository = Depends(get_customer_repo),
    user_repo: UserRepository = Depends(get_user_repo),
    event_repo: AssignmentEventRepository = Depends(get_event_repo),
):
    """Claim, assign, reassign, transfer or unassign a customer.

    Rate-limited per client address.  Business logic is delegated to
    :class:`AssignmentService`; this handler only maps the outcome to HTTP.
    """
    body = request_body or TransitionRequest()
    payload = TransitionPayload(
        recipient_id=body.recipient_id,
        reason=body.reason,
        request_metadata=RequestMetadata(
            ip=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        ),
    )
    result = await service.transition(
        customer_id,
        actor,
        action,
        payload,
        customer_repo=customer_repo,
        user_repo=user_repo,
        event_repo=event_repo,
    )
    if isinstance(result, TransitionFailure):
        return failure_response(result)
    return result


@router.get("/{customer_id}/assignment", response_model=OwnershipSnapshot)
async def get_assignment(
    customer_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: AssignmentService = Depends(get_assignment_service),
    customer_repo: CustomerRepository = Depends(get_customer_repo),
):
    """Current ownership of a customer, gated by the ``read`` policy."""
    result = await service.authorize_access(
        customer_id, actor, CustomerOperation.read, customer_repo
    )
    if isinstance(result, TransitionFailure):
        return failure_response(result)
    return result


@router.get(
    "/{customer_id}/assignment/history", response_model=AssignmentHistoryResponse
)
async def get_assignment_history(
    customer_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: AssignmentService = Depends(get_assignment_service),
    customer_repo: CustomerRepository = Depends(get_customer_repo),
    event_repo: AssignmentEventRepository = Depends(get_event_repo),
):
    result = await service.get_history(customer_id, actor, customer_repo, event_repo)
    if isinstance(result, TransitionFailure):
        return failure_response(result)
    return result
