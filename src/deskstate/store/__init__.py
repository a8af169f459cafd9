"""Persisted object graph: domain kinds and the object store."""

from .object_store import ObjectStore
from .objects import (
    CLIENT_OID,
    OBJECT_KINDS,
    Block,
    BlockDef,
    Client,
    MetaKey,
    RuntimeOpts,
    StateObject,
    Tab,
    Window,
    Workspace,
    kind_for,
)

__all__ = [
    "ObjectStore",
    "CLIENT_OID",
    "OBJECT_KINDS",
    "Block",
    "BlockDef",
    "Client",
    "MetaKey",
    "RuntimeOpts",
    "StateObject",
    "Tab",
    "Window",
    "Workspace",
    "kind_for",
]
