"""Client-facing request handlers.

Accessors open their own timeboxed context; mutating handlers take the
caller's context so the caller decides whether the work is journaled.
"""

from __future__ import annotations

import logging
import time

from ..core.context import (
    DEFAULT_TIMEOUT,
    RequestContext,
    drain_journal,
    request_context,
    with_journal,
)
from ..core.errors import (
    DuplicateObjectError,
    InvariantViolationError,
    NotFoundError,
    StateError,
    wrap_error,
)
from ..core.journal import UpdateBatch
from ..events import (
    ACTION_INSERT_AT_INDEX,
    EVENT_LAYOUT_ACTION,
    LayoutActionData,
    WindowEvent,
    WindowEventBus,
    get_event_bus,
)
from ..store.object_store import ObjectStore
from ..store.objects import Client, RuntimeOpts, Tab, Window, Workspace
from .layout import STARTER_LAYOUT, PortableLayout, validate_layout_order
from .object_service import ObjectService

__all__ = ["ClientService"]

LOGGER = logging.getLogger(__name__)


class ClientService:
    """Handlers for the client record, windows, and the starter layout.

    Args:
        store: Shared object store.
        event_bus: Bus used to announce layout changes; defaults to the
            process-wide bus.
        timeout: Deadline for the accessor handlers, in seconds.
        bootstrap_timeout: Deadline for the starter layout bootstrap.
        starter_layout: Layout seeded by :meth:`bootstrap_starter_layout`.
    """

    def __init__(
        self,
        store: ObjectStore,
        event_bus: WindowEventBus | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        bootstrap_timeout: float = DEFAULT_TIMEOUT,
        starter_layout: PortableLayout = STARTER_LAYOUT,
    ) -> None:
        self._store = store
        self._bus = event_bus or get_event_bus()
        self._timeout = timeout
        self._bootstrap_timeout = bootstrap_timeout
        self._starter_layout = tuple(starter_layout)
        validate_layout_order(self._starter_layout)
        self._objects = ObjectService(store, self._bus)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    async def get_client_data(self) -> Client:
        ctx = request_context(self._timeout)
        try:
            return await self._store.get_singleton(ctx, Client)
        except StateError as exc:
            raise wrap_error(exc, "error getting client data") from exc

    async def get_workspace(self, workspace_id: str) -> Workspace:
        ctx = request_context(self._timeout)
        try:
            return await self._store.must_get(ctx, Workspace, workspace_id)
        except StateError as exc:
            raise wrap_error(exc, "error getting workspace") from exc

    async def get_tab(self, tab_id: str) -> Tab:
        ctx = request_context(self._timeout)
        try:
            return await self._store.must_get(ctx, Tab, tab_id)
        except StateError as exc:
            raise wrap_error(exc, "error getting tab") from exc

    async def get_window(self, window_id: str) -> Window:
        ctx = request_context(self._timeout)
        try:
            return await self._store.must_get(ctx, Window, window_id)
        except StateError as exc:
            raise wrap_error(exc, "error getting window") from exc

    # ------------------------------------------------------------------
    # Windows
    # ------------------------------------------------------------------

    async def ensure_initial_data(self, ctx: RequestContext) -> bool:
        """Create the client singleton with one window if it does not exist.

        Concurrent callers race on the client's fixed id; only the one whose
        insert lands creates the first window.

        Returns:
            True if the client was created.
        """
        try:
            await self._store.get_singleton(ctx, Client)
            return False
        except NotFoundError:
            pass
        except StateError as exc:
            raise wrap_error(exc, "error getting client data") from exc

        try:
            await self._store.create(ctx, Client())
        except DuplicateObjectError:
            LOGGER.debug("Client was created by a concurrent request")
            return False
        except StateError as exc:
            raise wrap_error(exc, "error creating client") from exc
        await self.make_window(ctx)
        LOGGER.info("Initialized client state")
        return True

    async def make_window(self, ctx: RequestContext) -> Window:
        """Create a window with a fresh workspace and tab and register it on the client."""
        try:
            tab = await self._store.create(ctx, Tab(name="T1"))
            workspace = await self._store.create(
                ctx, Workspace(name="default", tab_ids=[tab.oid])
            )
            window = await self._store.create(
                ctx, Window(workspace_id=workspace.oid, active_tab_id=tab.oid)
            )
        except StateError as exc:
            raise wrap_error(exc, "error creating window") from exc

        client = await self._client_for_update(ctx)

        def _register(current: Client) -> None:
            current.window_ids.append(window.oid)

        try:
            await self._store.update_with(ctx, Client, client.oid, _register)
        except StateError as exc:
            raise wrap_error(exc, "error updating client data") from exc
        LOGGER.debug("Created window %s (tab %s)", window.oid, tab.oid)
        return window

    async def focus_window(self, ctx: RequestContext, window_id: str) -> None:
        """Move ``window_id`` to the front of the client's window stack.

        Focusing a window the client does not know about is a no-op.
        """
        client = await self._client_for_update(ctx)

        def _move_to_front(current: Client) -> bool:
            if window_id not in current.window_ids:
                return False
            if current.window_ids[0] == window_id:
                return False
            current.window_ids.remove(window_id)
            current.window_ids.insert(0, window_id)
            return True

        try:
            await self._store.update_with(ctx, Client, client.oid, _move_to_front)
        except StateError as exc:
            raise wrap_error(exc, "error updating client data") from exc

    # ------------------------------------------------------------------
    # Terms of service and starter layout
    # ------------------------------------------------------------------

    async def agree_tos(self, ctx: RequestContext) -> UpdateBatch:
        """Record terms-of-service acceptance and seed the starter layout.

        Returns the journaled updates so the caller can forward them to
        remote observers. A failed bootstrap is logged and the updates
        applied so far are still returned.
        """
        ctx = with_journal(ctx)
        client = await self._client_for_update(ctx)
        timestamp = int(time.time() * 1000)

        def _stamp(current: Client) -> None:
            current.tos_agreed = timestamp

        try:
            await self._store.update_with(ctx, Client, client.oid, _stamp)
        except StateError as exc:
            raise wrap_error(exc, "error updating client data") from exc

        try:
            await self.bootstrap_starter_layout(ctx)
        except StateError as exc:
            LOGGER.warning("Starter layout bootstrap failed: %s", exc)
        return drain_journal(ctx)

    async def bootstrap_starter_layout(self, ctx: RequestContext) -> None:
        """Create the starter layout blocks in the first window's active tab.

        Each block is announced to the window right after it is created.
        The first failure aborts the sequence; blocks created before it are
        kept and their events have already been sent.

        Raises:
            InvariantViolationError: the client has no windows.
        """
        ctx = ctx.with_timeout(self._bootstrap_timeout)
        try:
            client = await self._store.get_singleton(ctx, Client)
        except StateError as exc:
            LOGGER.warning("Unable to find client: %s", exc)
            raise wrap_error(exc, "unable to find client") from exc

        if not client.window_ids:
            raise InvariantViolationError(
                message="error bootstrapping layout, no windows exist"
            )
        window_id = client.window_ids[0]

        try:
            window = await self._store.must_get(ctx, Window, window_id)
        except StateError as exc:
            raise wrap_error(exc, "error getting window") from exc
        tab_id = window.active_tab_id

        for step in self._starter_layout:
            try:
                block = await self._objects.create_block_no_ui(
                    ctx, tab_id, step.block_def, RuntimeOpts()
                )
            except StateError as exc:
                raise wrap_error(exc, "unable to create block for starter layout") from exc

            self._bus.send_event_to_window(
                window_id,
                WindowEvent(
                    event_type=EVENT_LAYOUT_ACTION,
                    window_id=window_id,
                    data=LayoutActionData(
                        action_type=ACTION_INSERT_AT_INDEX,
                        tab_id=tab_id,
                        block_id=block.oid,
                        index_path=tuple(step.index_path),
                        size_hint=step.size,
                    ),
                ),
            )
        LOGGER.info(
            "Bootstrapped starter layout: %d blocks in tab %s", len(self._starter_layout), tab_id
        )

    async def _client_for_update(self, ctx: RequestContext) -> Client:
        try:
            return await self._store.get_singleton(ctx, Client)
        except StateError as exc:
            raise wrap_error(exc, "error getting client data") from exc
