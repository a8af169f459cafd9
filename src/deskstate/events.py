"""Window-addressed event delivery.

Handlers push typed event envelopes to the UI surface (window) that should
react to them. Each connected window registers a queue with the
:class:`WindowEventBus`; sending is fire-and-forget and never blocks or fails
the issuing request.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, AsyncIterator, Sequence

__all__ = [
    "Event",
    "LayoutActionData",
    "WindowEvent",
    "WindowSubscription",
    "WindowEventBus",
    "EVENT_LAYOUT_ACTION",
    "ACTION_INSERT",
    "ACTION_INSERT_AT_INDEX",
    "get_event_bus",
    "send_event_to_window",
]

logger = logging.getLogger(__name__)

EVENT_LAYOUT_ACTION = "layout-action"

ACTION_INSERT = "insert"
ACTION_INSERT_AT_INDEX = "insertatindex"

DEFAULT_QUEUE_SIZE = 256


@dataclass(slots=True)
class Event:
    """Base class for event payloads carried inside a :class:`WindowEvent`.

    Subclasses are ``@dataclass(slots=True)`` records that serialize to the
    camelCase payload the UI expects.
    """

    def to_dict(self) -> dict[str, Any]:  # pragma: no cover - overridden
        return {}


@dataclass(slots=True)
class LayoutActionData(Event):
    """Ask a window to place a block in one of its tab layouts.

    Attributes:
        action_type: ``"insertatindex"`` to place at ``index_path``, or
            ``"insert"`` to let the layout choose the position.
        tab_id: Tab whose layout receives the block.
        block_id: The block to place.
        index_path: Path into the nested layout tree, root first.
        size_hint: Optional relative node size.
        magnified: Whether the new node should open magnified.
    """

    action_type: str
    tab_id: str
    block_id: str
    index_path: tuple[int, ...] = ()
    size_hint: int | None = None
    magnified: bool = False

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "actionType": self.action_type,
            "tabId": self.tab_id,
            "blockId": self.block_id,
            "indexPath": list(self.index_path),
        }
        if self.size_hint:
            payload["sizeHint"] = self.size_hint
        if self.magnified:
            payload["magnified"] = True
        return payload


@dataclass(slots=True, frozen=True)
class WindowEvent:
    """Envelope delivered to a window's queue."""

    event_type: str
    window_id: str
    data: Event = field(default_factory=Event)

    def to_dict(self) -> dict[str, Any]:
        return {
            "eventType": self.event_type,
            "windowId": self.window_id,
            "data": self.data.to_dict(),
        }


class WindowSubscription:
    """A registered window's inbox.

    Created by :meth:`WindowEventBus.register_window` from inside the event
    loop that will consume it. Events arrive in the order each sender issued
    them.
    """

    __slots__ = ("window_id", "_queue", "_loop", "_bus")

    def __init__(
        self,
        window_id: str,
        queue: asyncio.Queue[WindowEvent],
        loop: asyncio.AbstractEventLoop,
        bus: WindowEventBus,
    ) -> None:
        self.window_id = window_id
        self._queue = queue
        self._loop = loop
        self._bus = bus

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    async def get(self) -> WindowEvent:
        """Wait for the next event."""
        return await self._queue.get()

    def get_nowait(self) -> WindowEvent:
        return self._queue.get_nowait()

    def drain(self) -> list[WindowEvent]:
        """Return every queued event without waiting."""
        events: list[WindowEvent] = []
        while not self._queue.empty():
            events.append(self._queue.get_nowait())
        return events

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        """Unregister this inbox from its bus."""
        self._bus.unregister_window(self.window_id, subscription=self)

    def _offer(self, event: WindowEvent) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(
                "Dropping %s for window %s: queue full (%d pending)",
                event.event_type,
                self.window_id,
                self._queue.qsize(),
            )

    def __aiter__(self) -> AsyncIterator[WindowEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[WindowEvent]:
        while True:
            yield await self._queue.get()


class WindowEventBus:
    """Registry mapping window ids to their inboxes.

    Sending to a window with no registered inbox is a documented no-op: a
    disconnected or not-yet-connected UI must not block or fail the request
    that produced the event. Sends from threads other than the inbox's event
    loop are handed over with ``call_soon_threadsafe``, which keeps per-sender
    FIFO order.

    Example::

        bus = WindowEventBus()
        inbox = bus.register_window("win-1")
        bus.send_event_to_window("win-1", WindowEvent(EVENT_LAYOUT_ACTION, "win-1", data))
        event = await inbox.get()
    """

    __slots__ = ("_subscriptions", "_lock", "_max_queue_size")

    def __init__(self, *, max_queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self._subscriptions: dict[str, WindowSubscription] = {}
        self._lock = RLock()
        self._max_queue_size = max(0, int(max_queue_size))

    def register_window(self, window_id: str) -> WindowSubscription:
        """Register (or replace) the inbox for ``window_id``.

        Must be called from the event loop that will consume the inbox.
        """
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[WindowEvent] = asyncio.Queue(maxsize=self._max_queue_size)
        subscription = WindowSubscription(window_id, queue, loop, self)
        with self._lock:
            replaced = window_id in self._subscriptions
            self._subscriptions[window_id] = subscription
        if replaced:
            logger.debug("Replaced event inbox for window %s", window_id)
        else:
            logger.debug("Registered event inbox for window %s", window_id)
        return subscription

    def unregister_window(
        self, window_id: str, *, subscription: WindowSubscription | None = None
    ) -> None:
        """Remove the inbox for ``window_id``.

        When ``subscription`` is given, only that inbox is removed so a stale
        handle cannot unregister its replacement.
        """
        with self._lock:
            current = self._subscriptions.get(window_id)
            if current is None:
                return
            if subscription is not None and current is not subscription:
                return
            del self._subscriptions[window_id]
        logger.debug("Unregistered event inbox for window %s", window_id)

    def is_registered(self, window_id: str) -> bool:
        with self._lock:
            return window_id in self._subscriptions

    def registered_windows(self) -> Sequence[str]:
        with self._lock:
            return tuple(self._subscriptions)

    def send_event_to_window(self, window_id: str, event: WindowEvent) -> bool:
        """Queue ``event`` for ``window_id`` without waiting.

        Returns:
            True if the event was handed to a registered inbox, False if it
            was dropped because no window is registered under ``window_id``.
        """
        with self._lock:
            subscription = self._subscriptions.get(window_id)
        if subscription is None:
            logger.debug(
                "No inbox for window %s; dropping %s", window_id, event.event_type
            )
            return False

        loop = subscription.loop
        if loop.is_closed():
            logger.debug("Inbox loop for window %s is closed; dropping event", window_id)
            return False
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            subscription._offer(event)
        else:
            try:
                loop.call_soon_threadsafe(subscription._offer, event)
            except RuntimeError:
                # Loop closed between the check and the hand-off.
                logger.debug("Inbox loop for window %s closed; dropping event", window_id)
                return False
        return True

    def clear(self) -> None:
        """Remove every registered inbox."""
        with self._lock:
            self._subscriptions.clear()
        logger.debug("Cleared all window inboxes")


_DEFAULT_BUS = WindowEventBus()


def get_event_bus() -> WindowEventBus:
    """Return the process-wide bus."""
    return _DEFAULT_BUS


def send_event_to_window(window_id: str, event: WindowEvent) -> bool:
    """Send ``event`` through the process-wide bus."""
    return _DEFAULT_BUS.send_event_to_window(window_id, event)
