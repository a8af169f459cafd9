"""Standardized error types for the state service layer.

Every failure surfaced by the store, the journal, or the orchestration
handlers is a :class:`StateError` subclass so callers can branch on the
error kind and serialize it for the transport layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping

__all__ = [
    "ErrorCode",
    "StateError",
    "NotFoundError",
    "DeadlineExceededError",
    "InvariantViolationError",
    "PersistenceError",
    "StaleObjectError",
    "DuplicateObjectError",
    "wrap_error",
    "error_from_dict",
]


# -----------------------------------------------------------------------------
# Error Code Constants
# -----------------------------------------------------------------------------

class ErrorCode:
    """Constants for error codes carried by :class:`StateError`."""

    NOT_FOUND = "not_found"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    INVARIANT_VIOLATION = "invariant_violation"
    PERSISTENCE_FAILURE = "persistence_failure"
    STALE_OBJECT = "stale_object"
    ALREADY_EXISTS = "already_exists"


# -----------------------------------------------------------------------------
# Base Error Class
# -----------------------------------------------------------------------------

@dataclass
class StateError(Exception):
    """Base exception class for all state service errors.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description, prefixed with the
            operation that failed as the error travels up the call stack.
        details: Additional structured error information.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dictionary for transport responses."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


@dataclass
class NotFoundError(StateError):
    """Raised when an object is absent from the store."""

    error_code: str = field(default=ErrorCode.NOT_FOUND)
    message: str = field(default="Object not found")
    details: dict[str, Any] = field(default_factory=dict)

    otype: str | None = field(default=None)
    oid: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.otype is not None:
            result["otype"] = self.otype
        if self.oid is not None:
            result["oid"] = self.oid
        return result


@dataclass
class DeadlineExceededError(StateError):
    """Raised when an operation does not complete within its timebox."""

    error_code: str = field(default=ErrorCode.DEADLINE_EXCEEDED)
    message: str = field(default="Operation exceeded its deadline")
    details: dict[str, Any] = field(default_factory=dict)

    operation: str | None = field(default=None)


@dataclass
class InvariantViolationError(StateError):
    """Raised when the persisted graph is not in a state the handler requires."""

    error_code: str = field(default=ErrorCode.INVARIANT_VIOLATION)
    message: str = field(default="State invariant violated")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class PersistenceError(StateError):
    """Opaque storage-layer failure."""

    error_code: str = field(default=ErrorCode.PERSISTENCE_FAILURE)
    message: str = field(default="Persistence failure")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class StaleObjectError(PersistenceError):
    """Raised when an update carries a version older than the stored one."""

    error_code: str = field(default=ErrorCode.STALE_OBJECT)
    message: str = field(default="Object was modified concurrently")
    details: dict[str, Any] = field(default_factory=dict)

    otype: str | None = field(default=None)
    oid: str | None = field(default=None)
    expected_version: int | None = field(default=None)
    current_version: int | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.expected_version is not None:
            result["expected_version"] = self.expected_version
        if self.current_version is not None:
            result["current_version"] = self.current_version
        return result


@dataclass
class DuplicateObjectError(PersistenceError):
    """Raised when creating an object whose ``(otype, oid)`` is already stored."""

    error_code: str = field(default=ErrorCode.ALREADY_EXISTS)
    message: str = field(default="Object already exists")
    details: dict[str, Any] = field(default_factory=dict)

    otype: str | None = field(default=None)
    oid: str | None = field(default=None)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def wrap_error(exc: StateError, context: str) -> StateError:
    """Return a copy of ``exc`` whose message is prefixed with ``context``.

    The error kind and structured fields are preserved so callers further up
    can still branch on the type. Use as ``raise wrap_error(exc, "...") from exc``.
    """
    return replace(exc, message=f"{context}: {exc.message}")


_ERROR_CLASSES: dict[str, type[StateError]] = {
    ErrorCode.NOT_FOUND: NotFoundError,
    ErrorCode.DEADLINE_EXCEEDED: DeadlineExceededError,
    ErrorCode.INVARIANT_VIOLATION: InvariantViolationError,
    ErrorCode.PERSISTENCE_FAILURE: PersistenceError,
    ErrorCode.STALE_OBJECT: StaleObjectError,
    ErrorCode.ALREADY_EXISTS: DuplicateObjectError,
}


def error_from_dict(data: Mapping[str, Any]) -> StateError:
    """Rebuild an error from its :meth:`StateError.to_dict` payload."""
    code = str(data.get("error", ErrorCode.PERSISTENCE_FAILURE))
    message = str(data.get("message", ""))
    details = dict(data.get("details") or {})
    error_cls = _ERROR_CLASSES.get(code)
    if error_cls is None:
        return StateError(error_code=code, message=message, details=details)
    return error_cls(message=message, details=details)
