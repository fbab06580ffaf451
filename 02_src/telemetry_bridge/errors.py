"""Error taxonomy shared by all entry points.

Internally components raise ``TelemetryError`` subclasses. Public entry
points convert them into an ``ErrorResult`` value so callers (and the HTTP
layer) always receive a structured object instead of an exception.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Category of a failed operation."""

    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    BACKEND = "backend_error"
    PARTIAL_RESULT = "partial_result"


@dataclass(frozen=True)
class ErrorResult:
    """Structured failure returned instead of a result."""

    kind: ErrorKind
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": True,
            "kind": self.kind.value,
            "message": self.message,
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class PartialResultWarning:
    """A sub-query of a composite operation that failed and was omitted."""

    field: str
    message: str
    kind: ErrorKind = ErrorKind.PARTIAL_RESULT

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "field": self.field, "message": self.message}


class TelemetryError(Exception):
    """Base class for errors raised inside the bridge."""

    kind = ErrorKind.BACKEND

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_result(self) -> ErrorResult:
        return ErrorResult(kind=self.kind, message=self.message, details=self.details)


class ValidationError(TelemetryError):
    """Caller supplied invalid arguments."""

    kind = ErrorKind.VALIDATION


class NotFoundError(TelemetryError):
    """Requested entity does not exist in the backend."""

    kind = ErrorKind.NOT_FOUND


class NoSpansFoundError(NotFoundError):
    """A trace reconstruction was requested for an empty span set."""

    def __init__(self, trace_id: str | None = None):
        message = (
            f"No spans found for trace ID: {trace_id}" if trace_id else "No spans found"
        )
        super().__init__(message, {"trace_id": trace_id} if trace_id else None)
        self.trace_id = trace_id


class BackendError(TelemetryError):
    """Search backend was unreachable or answered with an error."""

    kind = ErrorKind.BACKEND

    def __init__(
        self,
        message: str,
        status: int | None = None,
        error_type: str | None = None,
        reason: str | None = None,
    ):
        details: dict[str, Any] = {}
        if status is not None:
            details["status"] = status
        if error_type:
            details["type"] = error_type
        if reason:
            details["reason"] = reason
        super().__init__(message, details)
        self.status = status
        self.error_type = error_type
        self.reason = reason


def is_error_result(value: Any) -> bool:
    """Return True when ``value`` is an ``ErrorResult``."""
    return isinstance(value, ErrorResult)


def error_from_exception(exc: BaseException) -> ErrorResult:
    """Convert any exception into an ``ErrorResult``."""
    if isinstance(exc, TelemetryError):
        return exc.to_result()
    return ErrorResult(
        kind=ErrorKind.BACKEND,
        message=f"Unexpected error: {exc}",
        details={"exception": type(exc).__name__},
    )
