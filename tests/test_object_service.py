"""Tests for block creation handlers."""

from __future__ import annotations

import pytest

from deskstate.core.context import drain_journal, request_context, with_journal
from deskstate.core.errors import NotFoundError
from deskstate.core.journal import UpdateType
from deskstate.events import ACTION_INSERT, WindowEventBus
from deskstate.services.object_service import ObjectService
from deskstate.store.object_store import ObjectStore
from deskstate.store.objects import Block, BlockDef, RuntimeOpts, Tab


@pytest.fixture
def object_service(store: ObjectStore, event_bus: WindowEventBus) -> ObjectService:
    return ObjectService(store, event_bus)


class TestCreateBlockNoUi:
    @pytest.mark.asyncio
    async def test_block_is_appended_to_tab(
        self, object_service: ObjectService, store: ObjectStore
    ) -> None:
        ctx = with_journal(request_context())
        tab = await store.create(ctx, Tab(name="T1"))
        block_def = BlockDef(meta={"view": "term", "controller": "shell"})

        first = await object_service.create_block_no_ui(ctx, tab.oid, block_def, RuntimeOpts(24, 80))
        second = await object_service.create_block_no_ui(ctx, tab.oid, BlockDef(meta={"view": "cpuplot"}))

        loaded = await store.must_get(ctx, Tab, tab.oid)
        assert loaded.block_ids == [first.oid, second.oid]
        stored = await store.must_get(ctx, Block, first.oid)
        assert stored.meta == {"view": "term", "controller": "shell"}
        assert stored.runtime_opts == RuntimeOpts(24, 80)
        assert [(r.update_type, r.otype) for r in drain_journal(ctx)] == [
            (UpdateType.CREATED, "tab"),
            (UpdateType.CREATED, "block"),
            (UpdateType.UPDATED, "tab"),
            (UpdateType.CREATED, "block"),
            (UpdateType.UPDATED, "tab"),
        ]

    @pytest.mark.asyncio
    async def test_block_meta_is_copied(
        self, object_service: ObjectService, store: ObjectStore
    ) -> None:
        ctx = request_context()
        tab = await store.create(ctx, Tab())
        block_def = BlockDef(meta={"view": "preview", "file": "~"})

        block = await object_service.create_block_no_ui(ctx, tab.oid, block_def)
        block_def.meta["file"] = "/tmp"

        assert (await store.must_get(ctx, Block, block.oid)).meta["file"] == "~"

    @pytest.mark.asyncio
    async def test_missing_tab_creates_nothing(
        self, object_service: ObjectService, store: ObjectStore
    ) -> None:
        with pytest.raises(NotFoundError) as excinfo:
            await object_service.create_block_no_ui(
                request_context(), "missing", BlockDef(meta={"view": "term"})
            )
        assert excinfo.value.message.startswith("error getting tab")
        assert await store.get_all(request_context(), Block) == []


class TestCreateBlock:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("magnified", [False, True])
    async def test_sends_insert_event(
        self,
        object_service: ObjectService,
        event_bus: WindowEventBus,
        seed_client,
        magnified: bool,
    ) -> None:
        client = await seed_client()
        window_id = client.window_ids[0]
        inbox = event_bus.register_window(window_id)

        block = await object_service.create_block(
            request_context(), window_id, BlockDef(meta={"view": "web"}), magnified=magnified
        )

        (event,) = inbox.drain()
        assert event.data.action_type == ACTION_INSERT
        assert event.data.block_id == block.oid
        assert event.data.magnified is magnified

    @pytest.mark.asyncio
    async def test_unknown_window(self, object_service: ObjectService) -> None:
        with pytest.raises(NotFoundError) as excinfo:
            await object_service.create_block(request_context(), "nope", BlockDef())
        assert excinfo.value.message.startswith("error getting window")
