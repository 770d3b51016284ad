"""
Domain error taxonomy.

Every failure the engines and the advisory workflow can report is a
subclass of DomainError carrying a stable ErrorKind code, so calling code
can branch on the exception type (or on ``error.kind``) instead of
matching message strings.

Nothing here is retried internally; retry is always a caller decision.

Usage:
    try:
        workflow.assign(request_id, accountant_id, assigned_by)
    except AccountantUnavailable:
        ...  # prompt for a different accountant
    except InvalidStateTransition as e:
        ...  # e.current_status / e.target_status
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Stable error codes exposed to callers."""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NO_ELIGIBLE_REGIME = "NO_ELIGIBLE_REGIME"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    CONFLICT = "CONFLICT"
    UNAUTHORIZED = "UNAUTHORIZED"
    ACCOUNTANT_UNAVAILABLE = "ACCOUNTANT_UNAVAILABLE"
    NOT_FOUND = "NOT_FOUND"
    NEGATIVE_RESULT = "NEGATIVE_RESULT"


class DomainError(Exception):
    """Base class for all typed domain failures."""

    kind: ErrorKind = ErrorKind.VALIDATION_ERROR

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details: Dict[str, Any] = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Error payload in the platform's standard API error shape."""
        return {
            "code": self.kind.value,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(DomainError):
    """Malformed or out-of-range input; the caller can correct and resubmit."""
    kind = ErrorKind.VALIDATION_ERROR


class NoEligibleRegime(DomainError):
    """No tax regime is eligible for the given financial input."""
    kind = ErrorKind.NO_ELIGIBLE_REGIME


class InvalidStateTransition(DomainError):
    """Raised when a workflow transition is not allowed from the current state."""
    kind = ErrorKind.INVALID_STATE_TRANSITION

    def __init__(
        self,
        message: str,
        current_status: Optional[str] = None,
        target_status: Optional[str] = None,
        **details: Any,
    ):
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            message,
            current_status=current_status,
            target_status=target_status,
            **details,
        )


class ConflictError(InvalidStateTransition):
    """
    Compare-and-swap lost: the stored status no longer matches the
    status the transition was computed from. Re-read and decide.
    """
    kind = ErrorKind.CONFLICT


class Unauthorized(DomainError):
    """The actor lacks the required relationship to the resource."""
    kind = ErrorKind.UNAUTHORIZED


class AccountantUnavailable(DomainError):
    """The requested accountant failed the availability check."""
    kind = ErrorKind.ACCOUNTANT_UNAVAILABLE


class NotFound(DomainError):
    """Unknown identifier."""
    kind = ErrorKind.NOT_FOUND


class NegativeResult(DomainError):
    """A money operation would produce a negative amount where none is allowed."""
    kind = ErrorKind.NEGATIVE_RESULT
