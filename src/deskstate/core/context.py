"""Timeboxed request contexts.

A :class:`RequestContext` is an immutable value passed explicitly to every
store call. It carries the request's deadline (on the :func:`time.monotonic`
clock, so worker threads can check it too) and, when the handler asked for
one, the request's :class:`~deskstate.core.journal.UpdateJournal`.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, replace
from typing import Awaitable, TypeVar

from .errors import DeadlineExceededError
from .journal import UpdateBatch, UpdateJournal, UpdateRecord

__all__ = [
    "DEFAULT_TIMEOUT",
    "RequestContext",
    "request_context",
    "with_journal",
    "drain_journal",
    "run_with_deadline",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 2.0

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class RequestContext:
    """Deadline and optional journal for one unit of work.

    Attributes:
        deadline: Absolute :func:`time.monotonic` value after which
            operations fail, or ``None`` for no deadline.
        journal: Journal collecting the request's mutations, if any.
    """

    deadline: float | None = None
    journal: UpdateJournal | None = None

    def remaining(self) -> float | None:
        """Seconds left before the deadline (never negative), ``None`` if unbounded."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def check(self, operation: str) -> None:
        """Raise :class:`DeadlineExceededError` if the deadline has passed."""
        if self.expired():
            raise DeadlineExceededError(
                message=f"{operation}: deadline exceeded",
                operation=operation,
            )

    def with_timeout(self, timeout: float | None) -> RequestContext:
        """Derive a context whose deadline is at most ``timeout`` seconds away.

        The parent's deadline still applies when it is sooner, and the
        journal is carried over so the derived work stays observable.
        """
        if timeout is None:
            return self
        candidate = time.monotonic() + timeout
        if self.deadline is not None and self.deadline <= candidate:
            return self
        return replace(self, deadline=candidate)

    def record(self, record: UpdateRecord) -> None:
        """Append ``record`` to the journal; no-op for unjournaled contexts."""
        if self.journal is not None:
            self.journal.append(record)


def request_context(timeout: float | None = DEFAULT_TIMEOUT) -> RequestContext:
    """Open a fresh, unjournaled context expiring ``timeout`` seconds from now."""
    if timeout is None:
        return RequestContext()
    return RequestContext(deadline=time.monotonic() + timeout)


def with_journal(ctx: RequestContext) -> RequestContext:
    """Return a context carrying an empty journal.

    Nesting is not supported: a context that already has a journal is
    returned unchanged.
    """
    if ctx.journal is not None:
        return ctx
    return replace(ctx, journal=UpdateJournal())


def drain_journal(ctx: RequestContext) -> UpdateBatch:
    """Return the ordered mutations recorded on ``ctx`` (empty without a journal)."""
    if ctx.journal is None:
        return []
    return ctx.journal.drain()


async def run_with_deadline(ctx: RequestContext, awaitable: Awaitable[T], operation: str) -> T:
    """Await ``awaitable`` bounded by the context deadline.

    Raises:
        DeadlineExceededError: the deadline passed before or while waiting.
    """
    if ctx.expired() and inspect.iscoroutine(awaitable):
        awaitable.close()
    ctx.check(operation)
    remaining = ctx.remaining()
    try:
        return await asyncio.wait_for(awaitable, timeout=remaining)
    except asyncio.TimeoutError as exc:
        LOGGER.debug("%s timed out after %.3fs budget", operation, remaining or 0.0)
        raise DeadlineExceededError(
            message=f"{operation}: deadline exceeded",
            operation=operation,
        ) from exc
