"""Core request plumbing: contexts, update journals, and error types."""

from .context import (
    DEFAULT_TIMEOUT,
    RequestContext,
    drain_journal,
    request_context,
    run_with_deadline,
    with_journal,
)
from .errors import (
    DeadlineExceededError,
    DuplicateObjectError,
    InvariantViolationError,
    NotFoundError,
    PersistenceError,
    StaleObjectError,
    StateError,
    wrap_error,
)
from .journal import UpdateBatch, UpdateJournal, UpdateRecord, UpdateType

__all__ = [
    "DEFAULT_TIMEOUT",
    "RequestContext",
    "drain_journal",
    "request_context",
    "run_with_deadline",
    "with_journal",
    "DeadlineExceededError",
    "DuplicateObjectError",
    "InvariantViolationError",
    "NotFoundError",
    "PersistenceError",
    "StaleObjectError",
    "StateError",
    "wrap_error",
    "UpdateBatch",
    "UpdateJournal",
    "UpdateRecord",
    "UpdateType",
]
