from uuid import UUID

from fastapi import APIRouter, Depends

from app.api.v1.endpoints.customers import failure_response
from app.schemas.assignment import Actor, TransitionFailure, WorkloadResponse
from app.services.assignment_service import AssignmentService
from app.repositories.customer_repository import CustomerRepository
from app.repositories.user_repository import UserRepository
from app.api.deps import (
    get_assignment_service,
    get_current_actor,
    get_customer_repo,
    get_user_repo,
)

router = APIRouter(prefix="/assistants", tags=["Assistants"])


@router.get("/{assistant_id}/workload", response_model=WorkloadResponse)
async def get_assistant_workload(
    assistant_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: AssignmentService = Depends(get_assignment_service),
    customer_repo: CustomerRepository = Depends(get_customer_repo),
    user_repo: UserRepository = Depends(get_user_repo),
):
    """Assigned-customer count against the assistant's capacity limit.

    Visible to oversight roles and to the assistant itself.
    """
    result = await service.get_workload(assistant_id, actor, customer_repo, user_repo)
    if isinstance(result, TransitionFailure):
        return failure_response(result)
    return result
