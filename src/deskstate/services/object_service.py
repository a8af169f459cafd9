"""Block creation handlers."""

from __future__ import annotations

import logging

from ..core.context import RequestContext
from ..core.errors import StateError, wrap_error
from ..events import (
    ACTION_INSERT,
    EVENT_LAYOUT_ACTION,
    LayoutActionData,
    WindowEvent,
    WindowEventBus,
    get_event_bus,
)
from ..store.object_store import ObjectStore
from ..store.objects import Block, BlockDef, RuntimeOpts, Tab, Window

__all__ = ["ObjectService"]

LOGGER = logging.getLogger(__name__)


class ObjectService:
    """Creates blocks inside tabs and announces them to windows."""

    def __init__(self, store: ObjectStore, event_bus: WindowEventBus | None = None) -> None:
        self._store = store
        self._bus = event_bus or get_event_bus()

    async def create_block_no_ui(
        self,
        ctx: RequestContext,
        tab_id: str,
        block_def: BlockDef,
        runtime_opts: RuntimeOpts | None = None,
    ) -> Block:
        """Persist a block and attach it to ``tab_id`` without telling any window.

        If appending the block to the tab fails, the block stays persisted
        and the error is raised.
        """
        try:
            tab = await self._store.must_get(ctx, Tab, tab_id)
        except StateError as exc:
            raise wrap_error(exc, "error getting tab") from exc

        block = Block(meta=dict(block_def.meta), runtime_opts=runtime_opts or RuntimeOpts())
        try:
            block = await self._store.create(ctx, block)
        except StateError as exc:
            raise wrap_error(exc, "error creating block") from exc

        def _attach(current: Tab) -> None:
            current.block_ids.append(block.oid)

        try:
            await self._store.update_with(ctx, Tab, tab.oid, _attach)
        except StateError as exc:
            raise wrap_error(exc, "error adding block to tab") from exc
        LOGGER.debug("Created block %s in tab %s", block.oid, tab_id)
        return block

    async def create_block(
        self,
        ctx: RequestContext,
        window_id: str,
        block_def: BlockDef,
        *,
        magnified: bool = False,
    ) -> Block:
        """Create a block in the window's active tab and ask the window to show it."""
        try:
            window = await self._store.must_get(ctx, Window, window_id)
        except StateError as exc:
            raise wrap_error(exc, "error getting window") from exc

        block = await self.create_block_no_ui(ctx, window.active_tab_id, block_def)
        self._bus.send_event_to_window(
            window_id,
            WindowEvent(
                event_type=EVENT_LAYOUT_ACTION,
                window_id=window_id,
                data=LayoutActionData(
                    action_type=ACTION_INSERT,
                    tab_id=window.active_tab_id,
                    block_id=block.oid,
                    magnified=magnified,
                ),
            ),
        )
        return block
