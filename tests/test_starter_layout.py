"""Tests for the starter layout bootstrap."""

from __future__ import annotations

import pytest

from deskstate.core.context import request_context
from deskstate.core.errors import InvariantViolationError, PersistenceError
from deskstate.events import ACTION_INSERT_AT_INDEX, EVENT_LAYOUT_ACTION, WindowEventBus
from deskstate.services.client_service import ClientService
from deskstate.services.layout import STARTER_LAYOUT, LayoutStep, validate_layout_order
from deskstate.store.object_store import ObjectStore
from deskstate.store.objects import Block, BlockDef, Tab


class TestLayoutOrder:
    def test_starter_layout_is_placeable(self) -> None:
        validate_layout_order(STARTER_LAYOUT)
        assert len(STARTER_LAYOUT) == 7

    def test_child_before_parent_is_rejected(self) -> None:
        steps = [LayoutStep(index_path=(0,)), LayoutStep(index_path=(1, 1))]
        with pytest.raises(InvariantViolationError) as excinfo:
            validate_layout_order(steps)
        assert excinfo.value.details["step"] == 1

    def test_empty_path_is_rejected(self) -> None:
        with pytest.raises(InvariantViolationError):
            validate_layout_order([LayoutStep(index_path=())])

    def test_service_refuses_misordered_layout(self, store: ObjectStore) -> None:
        with pytest.raises(InvariantViolationError):
            ClientService(store, WindowEventBus(), starter_layout=[LayoutStep(index_path=(2, 1))])


class TestBootstrap:
    @pytest.mark.asyncio
    async def test_no_windows_raises_and_creates_nothing(
        self, client_service: ClientService, store: ObjectStore, seed_client
    ) -> None:
        await seed_client(windows=0)

        with pytest.raises(InvariantViolationError) as excinfo:
            await client_service.bootstrap_starter_layout(request_context())

        assert "no windows exist" in excinfo.value.message
        assert await store.get_all(request_context(), Block) == []

    @pytest.mark.asyncio
    async def test_creates_blocks_and_events_in_order(
        self, store: ObjectStore, event_bus: WindowEventBus, seed_client
    ) -> None:
        service = ClientService(store, event_bus)
        client = await seed_client(windows=1)
        window_id = client.window_ids[0]
        inbox = event_bus.register_window(window_id)

        await service.bootstrap_starter_layout(request_context())

        ctx = request_context()
        blocks = await store.get_all(ctx, Block)
        events = inbox.drain()
        assert len(blocks) == 7
        assert len(events) == 7
        assert [block.meta for block in blocks] == [
            dict(step.block_def.meta) for step in STARTER_LAYOUT
        ]
        for event, block, step in zip(events, blocks, STARTER_LAYOUT):
            assert event.event_type == EVENT_LAYOUT_ACTION
            assert event.window_id == window_id
            assert event.data.action_type == ACTION_INSERT_AT_INDEX
            assert event.data.block_id == block.oid
            assert event.data.index_path == step.index_path

        tab_id = events[0].data.tab_id
        tab = await store.must_get(ctx, Tab, tab_id)
        assert tab.block_ids == [block.oid for block in blocks]

    @pytest.mark.asyncio
    async def test_uses_first_window_only(
        self, client_service: ClientService, event_bus: WindowEventBus, seed_client
    ) -> None:
        client = await seed_client(windows=2)
        first = event_bus.register_window(client.window_ids[0])
        second = event_bus.register_window(client.window_ids[1])

        await client_service.bootstrap_starter_layout(request_context())

        assert first.pending() == 7
        assert second.pending() == 0

    @pytest.mark.asyncio
    async def test_without_observer_still_persists(
        self, client_service: ClientService, store: ObjectStore, seed_client
    ) -> None:
        await seed_client(windows=1)

        await client_service.bootstrap_starter_layout(request_context())

        assert len(await store.get_all(request_context(), Block)) == 7

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failing_step", [1, 4, 7])
    async def test_failure_keeps_earlier_blocks(
        self,
        store: ObjectStore,
        event_bus: WindowEventBus,
        seed_client,
        monkeypatch: pytest.MonkeyPatch,
        failing_step: int,
    ) -> None:
        service = ClientService(store, event_bus)
        client = await seed_client(windows=1)
        inbox = event_bus.register_window(client.window_ids[0])

        original_create = store.create
        block_count = 0

        async def _create(ctx, obj):
            nonlocal block_count
            if isinstance(obj, Block):
                block_count += 1
                if block_count == failing_step:
                    raise PersistenceError(message="disk full")
            return await original_create(ctx, obj)

        monkeypatch.setattr(store, "create", _create)

        with pytest.raises(PersistenceError) as excinfo:
            await service.bootstrap_starter_layout(request_context())

        assert excinfo.value.message.startswith("unable to create block for starter layout")
        blocks = await store.get_all(request_context(), Block)
        assert len(blocks) == failing_step - 1
        events = inbox.drain()
        assert [event.data.block_id for event in events] == [block.oid for block in blocks]

    @pytest.mark.asyncio
    async def test_custom_layout(self, store: ObjectStore, seed_client) -> None:
        bus = WindowEventBus()
        layout = [
            LayoutStep(index_path=(0,), block_def=BlockDef(meta={"view": "term"}), size=30),
            LayoutStep(index_path=(0, 1), block_def=BlockDef(meta={"view": "sysinfo"})),
        ]
        service = ClientService(store, bus, starter_layout=layout)
        client = await seed_client(windows=1)
        inbox = bus.register_window(client.window_ids[0])

        await service.bootstrap_starter_layout(request_context())

        events = inbox.drain()
        assert [event.data.size_hint for event in events] == [30, None]
        assert [event.data.index_path for event in events] == [(0,), (0, 1)]
