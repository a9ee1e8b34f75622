from typing import Dict, FrozenSet

from app.schemas.common import (
    AssignmentAction,
    AssignmentStatus,
    CustomerOperation,
    ErrorKind,
    EventAction,
    Role,
)

ROLES: FrozenSet[str] = frozenset(r.value for r in Role)

ROLE_CHECK_CLAUSE: str = f"role IN ({', '.join(repr(r.value) for r in Role)})"

EVENT_ACTIONS: FrozenSet[str] = frozenset(a.value for a in EventAction)

EVENT_ACTION_CHECK_CLAUSE: str = (
    f"action IN ({', '.join(repr(a.value) for a in EventAction)})"
)

ASSIGNMENT_STATUSES: FrozenSet[str] = frozenset(s.value for s in AssignmentStatus)

# bound into the assignment_events CHECK constraint
MAX_REASON_LENGTH: int = 500

# ---------------------------------------------------------------------------
# Permission tokens
# ---------------------------------------------------------------------------

CLAIM_CUSTOMERS = "claim_customers"
RECEIVE_CUSTOMERS = "receive_customers"
ASSIGN_CUSTOMERS = "assign_customers"
REASSIGN_CUSTOMERS = "reassign_customers"
TRANSFER_CUSTOMERS = "transfer_customers"
UNASSIGN_CUSTOMERS = "unassign_customers"
VIEW_CUSTOMERS = "view_customers"
UPDATE_CUSTOMERS = "update_customers"
VIEW_ASSIGNMENT_HISTORY = "view_assignment_history"
VIEW_WORKLOAD = "view_workload"

PERMISSION_TOKENS: FrozenSet[str] = frozenset(
    {
        CLAIM_CUSTOMERS,
        RECEIVE_CUSTOMERS,
        ASSIGN_CUSTOMERS,
        REASSIGN_CUSTOMERS,
        TRANSFER_CUSTOMERS,
        UNASSIGN_CUSTOMERS,
        VIEW_CUSTOMERS,
        UPDATE_CUSTOMERS,
        VIEW_ASSIGNMENT_HISTORY,
        VIEW_WORKLOAD,
    }
)

_OVERSIGHT_PERMISSIONS: FrozenSet[str] = frozenset(
    {
        REASSIGN_CUSTOMERS,
        TRANSFER_CUSTOMERS,
        UNASSIGN_CUSTOMERS,
        VIEW_ASSIGNMENT_HISTORY,
        VIEW_WORKLOAD,
    }
)

# Role -> granted permission tokens.  A user's own ``permissions`` column can
# only narrow this set, never widen it.
ROLE_PERMISSIONS: Dict[Role, FrozenSet[str]] = {
    Role.admin: PERMISSION_TOKENS - {CLAIM_CUSTOMERS, RECEIVE_CUSTOMERS},
    Role.supervisor: _OVERSIGHT_PERMISSIONS,
    Role.manager: _OVERSIGHT_PERMISSIONS,
    Role.assistant: frozenset(
        {CLAIM_CUSTOMERS, RECEIVE_CUSTOMERS, VIEW_CUSTOMERS, UPDATE_CUSTOMERS}
    ),
    Role.customer: frozenset(),
}

# Permission token required for each action / operation
ACTION_PERMISSIONS: Dict[str, str] = {
    AssignmentAction.claim.value: CLAIM_CUSTOMERS,
    AssignmentAction.assign.value: ASSIGN_CUSTOMERS,
    AssignmentAction.reassign.value: REASSIGN_CUSTOMERS,
    AssignmentAction.transfer.value: TRANSFER_CUSTOMERS,
    AssignmentAction.unassign.value: UNASSIGN_CUSTOMERS,
    CustomerOperation.read.value: VIEW_CUSTOMERS,
    CustomerOperation.update.value: UPDATE_CUSTOMERS,
}

# Transitions that hand the customer to a recipient and therefore pass
# through the workload guard
RECIPIENT_ACTIONS: FrozenSet[AssignmentAction] = frozenset(
    {
        AssignmentAction.claim,
        AssignmentAction.assign,
        AssignmentAction.reassign,
        AssignmentAction.transfer,
    }
)

# Transitions whose precondition is "currently assigned"
REQUIRES_ASSIGNED: FrozenSet[AssignmentAction] = frozenset(
    {
        AssignmentAction.reassign,
        AssignmentAction.transfer,
        AssignmentAction.unassign,
    }
)

EVENT_ACTION_FOR: Dict[AssignmentAction, EventAction] = {
    AssignmentAction.claim: EventAction.claimed,
    AssignmentAction.assign: EventAction.assigned,
    AssignmentAction.reassign: EventAction.reassigned,
    AssignmentAction.transfer: EventAction.transfer_requested,
    AssignmentAction.unassign: EventAction.unassigned,
}

# Transport mapping used by the HTTP layer
ERROR_STATUS_CODES: Dict[ErrorKind, int] = {
    ErrorKind.NotFound: 404,
    ErrorKind.Forbidden: 403,
    ErrorKind.InvalidTransition: 409,
    ErrorKind.Conflict: 409,
    ErrorKind.CapacityExceeded: 400,
    ErrorKind.RecipientInactive: 400,
    ErrorKind.ValidationError: 422,
    ErrorKind.StoreUnavailable: 503,
    ErrorKind.AuditWriteFailed: 200,
}
