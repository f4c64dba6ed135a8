"""Engine error taxonomy and user-facing error descriptions."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorCategory(str, Enum):
    """Categories of engine errors."""

    InvalidTransition = "invalid_transition"
    """Action is not legal from the entity's current status."""

    ValidationFailed = "validation_failed"
    """Action parameters or creation fields violate field constraints."""

    Conflict = "conflict"
    """Entity was mutated concurrently; the observed status no longer holds."""

    NotFound = "not_found"
    """Entity does not exist or is outside the caller's tenant."""

    PermissionDenied = "permission_denied"
    """Caller's role may not perform the action."""

    RemoteInvocationFailed = "remote_invocation_failed"
    """Remote side-effecting procedure failed or timed out."""

    AuditUnavailable = "audit_unavailable"
    """Audit trail could not record the action; the action did not happen."""

    BatchRejected = "batch_rejected"
    """Whole batch rejected before any row was committed."""

    RowFailed = "row_failed"
    """A single batch row failed; other rows are unaffected."""

    UnknownError = "unknown_error"
    """Unknown or unclassified error."""


class InvocationErrorKind(str, Enum):
    """Normalized outcomes of a failed remote invocation."""

    Timeout = "timeout"
    """Deadline elapsed; the remote side may or may not have applied the effect."""

    NetworkUnavailable = "network_unavailable"
    """Remote endpoint could not be reached."""

    ServiceUnavailable = "service_unavailable"
    """Remote service answered with a 5xx-equivalent failure."""

    Unauthorized = "unauthorized"
    """Remote service refused the caller's credentials."""

    Generic = "generic"
    """Any other failure reported by the remote procedure."""


ERROR_HINTS: dict[ErrorCategory, tuple[str, str]] = {
    ErrorCategory.InvalidTransition: (
        "Action not allowed",
        "Refresh the record; this action is not available in its current status.",
    ),
    ErrorCategory.ValidationFailed: (
        "Please check the submitted fields",
        "Make sure all required fields are filled correctly.",
    ),
    ErrorCategory.Conflict: (
        "This record was changed by someone else",
        "Reload the record to see its current status, then retry if still needed.",
    ),
    ErrorCategory.NotFound: (
        "The requested item was not found",
        "Please check the information and try again.",
    ),
    ErrorCategory.PermissionDenied: (
        "You do not have permission for this action",
        "Ask an administrator with the required role to perform it.",
    ),
    ErrorCategory.RemoteInvocationFailed: (
        "Server action failed",
        "Please try again. If the problem persists, contact support.",
    ),
    ErrorCategory.AuditUnavailable: (
        "The action could not be recorded",
        "Nothing was changed. Please log in again and retry.",
    ),
    ErrorCategory.BatchRejected: (
        "The import file was rejected",
        "Fix the listed problems in the file and upload it again.",
    ),
    ErrorCategory.RowFailed: (
        "A row could not be imported",
        "Correct the row and import it again; the other rows were not affected.",
    ),
    ErrorCategory.UnknownError: (
        "An unexpected error occurred",
        "Please try again. If the problem continues, contact support.",
    ),
}

INVOCATION_HINTS: dict[InvocationErrorKind, tuple[str, str]] = {
    InvocationErrorKind.Timeout: (
        "Server timeout",
        "The action may or may not have been applied. Reload the record before retrying.",
    ),
    InvocationErrorKind.NetworkUnavailable: (
        "Unable to connect to server",
        "Please check your connection and try again.",
    ),
    InvocationErrorKind.ServiceUnavailable: (
        "Service temporarily unavailable",
        "Please try again in a few moments.",
    ),
    InvocationErrorKind.Unauthorized: (
        "Your session has expired",
        "Please log in again to continue.",
    ),
    InvocationErrorKind.Generic: (
        "Server action failed",
        "Please review the error details and try again.",
    ),
}


class EngineError(Exception):
    """Base error for every failure the engine reports to callers.

    Keeps the user-facing message and remediation hint apart from the
    technical detail used for diagnostics.

    Example:
        ```python
        raise ValidationFailedError(
            "Rejection reason must be at least 10 characters",
            field="rejection_reason",
        )
        ```
    """

    category: ErrorCategory = ErrorCategory.UnknownError

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        technical: str | None = None,
        retryable: bool = False,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize EngineError.

        Args:
            message: Human-readable error message.
            hint: Remediation hint. Defaults to the category's hint.
            technical: Technical detail for diagnostics, never shown as the message.
            retryable: Whether retrying the same intent can succeed.
            details: Additional structured error details.
        """
        self.message = message
        self.hint = hint or ERROR_HINTS[self.category][1]
        self.technical = technical
        self.retryable = retryable
        self.details = details or {}
        super().__init__(self.message)

    @property
    def label(self) -> str:
        """Short category label for display."""
        return ERROR_HINTS[self.category][0]

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(category={self.category.value}, "
            f"message={self.message!r}, retryable={self.retryable})"
        )

    def __str__(self) -> str:
        return self.message


class InvalidTransitionError(EngineError):
    """Raised when an action's source status does not match the entity."""

    category = ErrorCategory.InvalidTransition


class ValidationFailedError(EngineError):
    """Raised when parameters violate an action's field constraints."""

    category = ErrorCategory.ValidationFailed

    def __init__(self, message: str, field: str | None = None, **kwargs: Any) -> None:
        self.field = field
        super().__init__(message, **kwargs)


class ConflictError(EngineError):
    """Raised when a conditional write finds the entity already changed."""

    category = ErrorCategory.Conflict

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)


class EntityNotFoundError(EngineError):
    """Raised when an entity is missing or outside the caller's tenant."""

    category = ErrorCategory.NotFound


class PermissionDeniedError(EngineError):
    """Raised when the actor's role is not allowed to perform an action."""

    category = ErrorCategory.PermissionDenied


class RemoteInvocationError(EngineError):
    """Raised when a remote-backed step does not report success."""

    category = ErrorCategory.RemoteInvocationFailed

    def __init__(
        self,
        kind: InvocationErrorKind,
        message: str | None = None,
        procedure_id: str | None = None,
        **kwargs: Any,
    ) -> None:
        self.kind = kind
        self.procedure_id = procedure_id
        label, hint = INVOCATION_HINTS[kind]
        kwargs.setdefault("hint", hint)
        kwargs.setdefault(
            "retryable",
            kind in (InvocationErrorKind.NetworkUnavailable, InvocationErrorKind.ServiceUnavailable),
        )
        super().__init__(message or label, **kwargs)

    @property
    def label(self) -> str:
        return INVOCATION_HINTS[self.kind][0]

    @property
    def outcome_unknown(self) -> bool:
        """True when the remote side may still have applied the effect."""
        return self.kind == InvocationErrorKind.Timeout


class AuditUnavailableError(EngineError):
    """Raised when the audit trail cannot record an action."""

    category = ErrorCategory.AuditUnavailable


class BatchRejectedError(EngineError):
    """Raised when a batch contains duplicate natural keys."""

    category = ErrorCategory.BatchRejected

    def __init__(self, duplicate_keys: list[str], message: str | None = None, **kwargs: Any) -> None:
        self.duplicate_keys = duplicate_keys
        super().__init__(
            message or f"Duplicate unit numbers in file: {', '.join(duplicate_keys)}",
            **kwargs,
        )


class RowFailedError(EngineError):
    """A single batch row failure, recorded against its 1-based row index."""

    category = ErrorCategory.RowFailed

    def __init__(
        self,
        row_index: int,
        key: str | None,
        cause: Exception | str,
        **kwargs: Any,
    ) -> None:
        self.row_index = row_index
        self.key = key
        self.cause = cause
        message = cause.message if isinstance(cause, EngineError) else str(cause)
        super().__init__(message or "Unknown error", **kwargs)


class ErrorInfo(BaseModel):
    """User-facing rendering of an error."""

    category: str = Field(..., description="Error category value")
    label: str = Field(..., description="Short category label")
    message: str = Field(..., description="Human-readable message")
    hint: str = Field(..., description="Remediation hint")
    technical: str | None = Field(default=None, description="Diagnostic detail")

    model_config = ConfigDict(frozen=True)


def describe_error(error: BaseException) -> ErrorInfo:
    """Render any exception into the user-facing ErrorInfo shape.

    Args:
        error: Exception raised by the engine or by a collaborator.

    Returns:
        ErrorInfo with category, label, message, hint and technical detail.
    """
    if isinstance(error, RemoteInvocationError):
        return ErrorInfo(
            category=f"{error.category.value}:{error.kind.value}",
            label=error.label,
            message=error.message,
            hint=error.hint,
            technical=error.technical,
        )
    if isinstance(error, EngineError):
        return ErrorInfo(
            category=error.category.value,
            label=error.label,
            message=error.message,
            hint=error.hint,
            technical=error.technical,
        )
    label, hint = ERROR_HINTS[ErrorCategory.UnknownError]
    return ErrorInfo(
        category=ErrorCategory.UnknownError.value,
        label=label,
        message=label,
        hint=hint,
        technical=f"{type(error).__name__}: {error}",
    )
