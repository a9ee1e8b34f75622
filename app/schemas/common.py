from enum import Enum
from pydantic import BaseModel


class Role(str, Enum):
    admin = "admin"
    supervisor = "supervisor"
    manager = "manager"
    assistant = "assistant"
    customer = "customer"


class AssignmentAction(str, Enum):
    """The five ownership transitions a customer record can go through."""

    claim = "claim"
    assign = "assign"
    reassign = "reassign"
    transfer = "transfer"
    unassign = "unassign"


class CustomerOperation(str, Enum):
    """Customer-scoped operations gated by ownership."""

    read = "read"
    update = "update"


class AssignmentStatus(str, Enum):
    unassigned = "unassigned"
    assigned = "assigned"


class EventAction(str, Enum):
    """Action recorded on an audit entry."""

    claimed = "claimed"
    assigned = "assigned"
    reassigned = "reassigned"
    unassigned = "unassigned"
    transfer_requested = "transfer-requested"


class DenialReason(str, Enum):
    RoleNotPermitted = "RoleNotPermitted"
    InsufficientPrivilege = "InsufficientPrivilege"
    NotResourceOwner = "NotResourceOwner"
    RecipientNotPermitted = "RecipientNotPermitted"
    RecipientNotFound = "RecipientNotFound"
    RecipientInactive = "RecipientInactive"
    CapacityExceeded = "CapacityExceeded"


class ErrorKind(str, Enum):
    NotFound = "NotFound"
    Forbidden = "Forbidden"
    InvalidTransition = "InvalidTransition"
    Conflict = "Conflict"
    CapacityExceeded = "CapacityExceeded"
    RecipientInactive = "RecipientInactive"
    ValidationError = "ValidationError"
    StoreUnavailable = "StoreUnavailable"
    AuditWriteFailed = "AuditWriteFailed"


class SuccessResponse(BaseModel):
    """Generic success response base."""

    success: bool = True
