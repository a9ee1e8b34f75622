"""Pydantic schemas package – re-exports for convenience."""

# Common enums
from app.schemas.common import (
    Role as Role,
    AssignmentAction as AssignmentAction,
    CustomerOperation as CustomerOperation,
    AssignmentStatus as AssignmentStatus,
    EventAction as EventAction,
    DenialReason as DenialReason,
    ErrorKind as ErrorKind,
    SuccessResponse as SuccessResponse,
)

# Assignment schemas
from app.schemas.assignment import (
    Actor as Actor,
    OwnershipSnapshot as OwnershipSnapshot,
    RequestMetadata as RequestMetadata,
    TransitionPayload as TransitionPayload,
    TransitionRequest as TransitionRequest,
    PolicyDecision as PolicyDecision,
    CapacityDecision as CapacityDecision,
    AppliedTransition as AppliedTransition,
    TransitionWarning as TransitionWarning,
    TransitionSuccess as TransitionSuccess,
    TransitionFailure as TransitionFailure,
    AssignmentEventOut as AssignmentEventOut,
    AssignmentHistoryResponse as AssignmentHistoryResponse,
    WorkloadResponse as WorkloadResponse,
)
