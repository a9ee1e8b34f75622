"""Assignment-engine Pydantic schemas (actors, snapshots, decisions, results)."""

from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field

from app.schemas.common import (
    AssignmentAction,
    AssignmentStatus,
    DenialReason,
    ErrorKind,
    Role,
    SuccessResponse,
)


# ---------------------------------------------------------------------------
# Actors and ownership snapshots
# ---------------------------------------------------------------------------


class Actor(BaseModel):
    """The authenticated user performing an operation."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    role: Role
    is_active: bool = True
    permissions: FrozenSet[str] = frozenset()


class OwnershipSnapshot(BaseModel):
    """Ownership columns of one customer at a point in time."""

    model_config = ConfigDict(frozen=True)

    customer_id: UUID
    assigned_to: Optional[UUID] = None
    assigned_by: Optional[UUID] = None
    assigned_at: Optional[datetime] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def assignment_status(self) -> AssignmentStatus:
        if self.assigned_to is None:
            return AssignmentStatus.unassigned
        return AssignmentStatus.assigned

    def to_audit(self) -> Dict[str, Any]:
        """Return the ``{assignedTo, assignmentStatus, assignedAt}`` audit shape."""
        return {
            "assignedTo": str(self.assigned_to) if self.assigned_to else None,
            "assignmentStatus": self.assignment_status.value,
            "assignedAt": self.assigned_at.isoformat() if self.assigned_at else None,
        }


class RequestMetadata(BaseModel):
    ip: Optional[str] = None
    user_agent: Optional[str] = None

    def to_audit(self) -> Dict[str, Optional[str]]:
        return {"ip": self.ip, "userAgent": self.user_agent}


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class TransitionPayload(BaseModel):
    """Optional inputs of a transition.

    Length and presence rules are checked by the state machine *after*
    authorization, so an unauthorized caller always gets ``Forbidden``
    whatever the payload holds.
    """

    recipient_id: Optional[UUID] = None
    reason: Optional[str] = None
    request_metadata: Optional[RequestMetadata] = None


class TransitionRequest(BaseModel):
    """Request body for POST /api/v1/customers/{id}/assignment/{action}."""

    recipient_id: Optional[UUID] = None
    reason: Optional[str] = None


# ---------------------------------------------------------------------------
# Decision values
# ---------------------------------------------------------------------------


class PolicyDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    allowed: bool
    reason: Optional[DenialReason] = None
    message: Optional[str] = None

    @classmethod
    def allow(cls) -> "PolicyDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenialReason, message: str) -> "PolicyDecision":
        return cls(allowed=False, reason=reason, message=message)


class CapacityDecision(BaseModel):
    """Outcome of a workload check.

    ``assistant`` carries the recipient row that was read, so callers can
    run further recipient checks without reading it twice.
    """

    model_config = ConfigDict(frozen=True)

    allowed: bool
    reason: Optional[DenialReason] = None
    current_count: Optional[int] = None
    limit: Optional[int] = None
    assistant: Optional[Any] = Field(default=None, exclude=True, repr=False)


class AppliedTransition(BaseModel):
    """Before/after snapshots of a committed transition."""

    model_config = ConfigDict(frozen=True)

    action: AssignmentAction
    previous: OwnershipSnapshot
    new: OwnershipSnapshot


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class TransitionWarning(BaseModel):
    error_kind: ErrorKind
    message: str


class TransitionSuccess(SuccessResponse):
    customer_id: UUID
    assigned_to: Optional[UUID] = None
    assignment_status: AssignmentStatus
    assigned_at: Optional[datetime] = None
    audit_event_id: Optional[UUID] = None
    warnings: List[TransitionWarning] = Field(default_factory=list)


class TransitionFailure(BaseModel):
    success: bool = False
    error_kind: ErrorKind
    message: str
    details: Optional[Dict[str, Any]] = None


class AssignmentEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    event_id: UUID
    customer_id: UUID
    action_by: UUID
    action: str
    previous_assignment: Dict[str, Any]
    new_assignment: Dict[str, Any]
    timestamp: datetime
    reason: Optional[str] = None
    request_metadata: Dict[str, Any] = Field(default_factory=dict)


class AssignmentHistoryResponse(BaseModel):
    customer_id: UUID
    total: int
    events: List[AssignmentEventOut]


class WorkloadResponse(BaseModel):
    assistant_id: UUID
    current_count: int
    limit: int
    available: int
