"""Shared pytest fixtures."""

from __future__ import annotations

from typing import Awaitable, Callable

import pytest

from deskstate.core.context import request_context
from deskstate.events import WindowEventBus
from deskstate.services.client_service import ClientService
from deskstate.store.object_store import ObjectStore
from deskstate.store.objects import Client, Tab, Window, Workspace


@pytest.fixture
def store() -> ObjectStore:
    """In-memory object store, closed after the test."""
    object_store = ObjectStore(":memory:")
    yield object_store
    object_store.close()


@pytest.fixture
def event_bus() -> WindowEventBus:
    return WindowEventBus()


@pytest.fixture
def client_service(store: ObjectStore, event_bus: WindowEventBus) -> ClientService:
    return ClientService(store, event_bus)


SeedFn = Callable[..., Awaitable[Client]]


@pytest.fixture
def seed_client(store: ObjectStore) -> SeedFn:
    """Return a coroutine function that persists a client with ``windows`` windows.

    Each window gets its own workspace and an active tab.
    """

    async def _seed(windows: int = 1) -> Client:
        ctx = request_context(None)
        client = Client()
        for index in range(windows):
            tab = await store.create(ctx, Tab(name=f"T{index + 1}"))
            workspace = await store.create(ctx, Workspace(name=f"ws{index}", tab_ids=[tab.oid]))
            window = await store.create(
                ctx, Window(workspace_id=workspace.oid, active_tab_id=tab.oid)
            )
            client.window_ids.append(window.oid)
        return await store.create(ctx, client)

    return _seed
