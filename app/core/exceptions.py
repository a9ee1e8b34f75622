from typing import Any, Dict, Optional

from app.schemas.common import ErrorKind


class AssignmentEngineError(Exception):
    """Base class for all assignment-engine domain exceptions.

    Every custom exception in this module inherits from here so that a
    single ``except AssignmentEngineError`` clause can catch any domain
    error.  Each subclass pins the stable ``error_kind`` that API
    consumers branch on.
    """

    error_kind: ErrorKind = ErrorKind.ValidationError

    def __init__(
        self,
        detail: str = "An error occurred",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.detail = detail
        self.details = details
        super().__init__(detail)


# Kept as a separate name so callers can distinguish transition failures
# from infrastructure failures in ``except`` clauses.
class AssignmentError(AssignmentEngineError):
    """Raised when an ownership transition is rejected."""


class CustomerNotFoundError(AssignmentError):
    """Raised when a requested customer does not exist."""

    error_kind = ErrorKind.NotFound

    def __init__(self, detail: str = "Customer not found", details=None):
        super().__init__(detail, details)


class RecipientNotFoundError(AssignmentError):
    """Raised when the recipient assistant does not exist."""

    error_kind = ErrorKind.NotFound

    def __init__(self, detail: str = "Recipient assistant not found", details=None):
        super().__init__(detail, details)


class ForbiddenError(AssignmentError):
    """Raised when the authorization policy denies an action."""

    error_kind = ErrorKind.Forbidden

    def __init__(self, detail: str = "Action not permitted", details=None):
        super().__init__(detail, details)


class InvalidTransitionError(AssignmentError):
    """Raised when the action's precondition does not match the current state."""

    error_kind = ErrorKind.InvalidTransition

    def __init__(self, detail: str = "Invalid assignment transition", details=None):
        super().__init__(detail, details)


class AssignmentConflictError(AssignmentError):
    """Raised when the conditional write lost a race (AlreadyAssigned)."""

    error_kind = ErrorKind.Conflict

    def __init__(self, detail: str = "Customer is already assigned", details=None):
        super().__init__(detail, details)


class CapacityExceededError(AssignmentError):
    """Raised when the recipient is at or above their customer limit."""

    error_kind = ErrorKind.CapacityExceeded

    def __init__(
        self,
        detail: str = "Assistant has reached maximum customer capacity",
        details=None,
    ):
        super().__init__(detail, details)


class RecipientInactiveError(AssignmentError):
    """Raised when the recipient account is deactivated."""

    error_kind = ErrorKind.RecipientInactive

    def __init__(self, detail: str = "Recipient assistant is not active", details=None):
        super().__init__(detail, details)


class AssignmentValidationError(AssignmentError):
    """Raised when transition input is malformed."""

    error_kind = ErrorKind.ValidationError

    def __init__(self, detail: str = "Invalid assignment request", details=None):
        super().__init__(detail, details)


class StoreUnavailableError(AssignmentEngineError):
    """Raised when the record store is unreachable or timed out.

    Transient: the caller may safely retry.
    """

    error_kind = ErrorKind.StoreUnavailable

    def __init__(
        self, detail: str = "Assignment store temporarily unavailable", details=None
    ):
        super().__init__(detail, details)


class AuditWriteFailedError(AssignmentEngineError):
    """Raised when the audit event could not be persisted.

    The ownership change has already committed; this is reported as a
    warning on a successful result and never reverses the commit.
    """

    error_kind = ErrorKind.AuditWriteFailed

    def __init__(
        self,
        detail: str = "Ownership changed but the audit event failed to persist",
        details=None,
    ):
        super().__init__(detail, details)
