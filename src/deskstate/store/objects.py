"""Persisted UI state objects and their serialization rules.

Each kind declares its ``OTYPE`` tag and converts itself to and from the
JSON payload stored by the object store. The kind registry
:data:`OBJECT_KINDS` maps tags back to classes; nothing is inferred from
the payload shape at runtime.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, ClassVar, Mapping, Sequence, Union

from jsonschema import Draft202012Validator

__all__ = [
    "MetaKey",
    "Client",
    "Window",
    "Workspace",
    "Tab",
    "Block",
    "BlockDef",
    "RuntimeOpts",
    "StateObject",
    "OBJECT_KINDS",
    "kind_for",
    "new_oid",
    "CLIENT_OID",
]

MAX_SCHEMA_ERRORS = 10

# Well-known id of the client singleton; the store's primary key keeps it unique.
CLIENT_OID = "client"


class MetaKey:
    """Recognized keys of a block's ``meta`` mapping."""

    VIEW = "view"
    CONTROLLER = "controller"
    URL = "url"
    FILE = "file"
    CONNECTION = "connection"
    EDIT = "edit"


def new_oid() -> str:
    return uuid.uuid4().hex


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
        return []
    return [str(item) for item in value]


def _meta(value: Any) -> dict[str, Any]:
    if isinstance(value, Mapping):
        return {str(key): item for key, item in value.items()}
    return {}


@dataclass(slots=True)
class Client:
    """The singleton client record.

    ``window_ids`` is ordered most-recently-focused first and holds each
    window at most once. ``tos_agreed`` is the acceptance time in epoch
    milliseconds, ``0`` until the user agrees. It always lives under
    :data:`CLIENT_OID`.
    """

    OTYPE: ClassVar[str] = "client"
    SINGLETON_OID: ClassVar[str] = CLIENT_OID

    oid: str = CLIENT_OID
    version: int = 0
    window_ids: list[str] = field(default_factory=list)
    tos_agreed: int = 0
    meta: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "otype": self.OTYPE,
            "oid": self.oid,
            "version": self.version,
            "windowids": list(self.window_ids),
            "tosagreed": self.tos_agreed,
            "meta": dict(self.meta),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> Client:
        return cls(
            oid=str(payload.get("oid", "")),
            version=int(payload.get("version", 0)),
            window_ids=_str_list(payload.get("windowids")),
            tos_agreed=int(payload.get("tosagreed") or 0),
            meta=_meta(payload.get("meta")),
        )


@dataclass(slots=True)
class Window:
    """A top-level UI surface showing one workspace."""

    OTYPE: ClassVar[str] = "window"

    oid: str = ""
    version: int = 0
    workspace_id: str = ""
    active_tab_id: str = ""
    pos: tuple[int, int] = (0, 0)
    size: tuple[int, int] = (0, 0)
    meta: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "otype": self.OTYPE,
            "oid": self.oid,
            "version": self.version,
            "workspaceid": self.workspace_id,
            "activetabid": self.active_tab_id,
            "pos": {"x": self.pos[0], "y": self.pos[1]},
            "winsize": {"width": self.size[0], "height": self.size[1]},
            "meta": dict(self.meta),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> Window:
        pos = payload.get("pos") or {}
        size = payload.get("winsize") or {}
        return cls(
            oid=str(payload.get("oid", "")),
            version=int(payload.get("version", 0)),
            workspace_id=str(payload.get("workspaceid", "")),
            active_tab_id=str(payload.get("activetabid", "")),
            pos=(int(pos.get("x", 0)), int(pos.get("y", 0))),
            size=(int(size.get("width", 0)), int(size.get("height", 0))),
            meta=_meta(payload.get("meta")),
        )


@dataclass(slots=True)
class Workspace:
    OTYPE: ClassVar[str] = "workspace"

    oid: str = ""
    version: int = 0
    name: str = ""
    tab_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "otype": self.OTYPE,
            "oid": self.oid,
            "version": self.version,
            "name": self.name,
            "tabids": list(self.tab_ids),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> Workspace:
        return cls(
            oid=str(payload.get("oid", "")),
            version=int(payload.get("version", 0)),
            name=str(payload.get("name", "")),
            tab_ids=_str_list(payload.get("tabids")),
        )


@dataclass(slots=True)
class Tab:
    OTYPE: ClassVar[str] = "tab"

    oid: str = ""
    version: int = 0
    name: str = ""
    block_ids: list[str] = field(default_factory=list)
    meta: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "otype": self.OTYPE,
            "oid": self.oid,
            "version": self.version,
            "name": self.name,
            "blockids": list(self.block_ids),
            "meta": dict(self.meta),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> Tab:
        return cls(
            oid=str(payload.get("oid", "")),
            version=int(payload.get("version", 0)),
            name=str(payload.get("name", "")),
            block_ids=_str_list(payload.get("blockids")),
            meta=_meta(payload.get("meta")),
        )


@dataclass(slots=True)
class RuntimeOpts:
    """Creation-time hints for a block's controller (terminal size)."""

    term_rows: int = 0
    term_cols: int = 0

    def to_dict(self) -> dict[str, Any]:
        if not self.term_rows and not self.term_cols:
            return {}
        return {"termsize": {"rows": self.term_rows, "cols": self.term_cols}}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> RuntimeOpts:
        term = (payload or {}).get("termsize") or {}
        return cls(term_rows=int(term.get("rows", 0)), term_cols=int(term.get("cols", 0)))


@dataclass(slots=True)
class Block:
    """A leaf content unit placed inside a tab's layout."""

    OTYPE: ClassVar[str] = "block"

    oid: str = ""
    version: int = 0
    meta: dict[str, Any] = field(default_factory=dict)
    runtime_opts: RuntimeOpts = field(default_factory=RuntimeOpts)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "otype": self.OTYPE,
            "oid": self.oid,
            "version": self.version,
            "meta": dict(self.meta),
        }
        runtime = self.runtime_opts.to_dict()
        if runtime:
            payload["runtimeopts"] = runtime
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> Block:
        return cls(
            oid=str(payload.get("oid", "")),
            version=int(payload.get("version", 0)),
            meta=_meta(payload.get("meta")),
            runtime_opts=RuntimeOpts.from_dict(payload.get("runtimeopts")),
        )


StateObject = Union[Client, Window, Workspace, Tab, Block]

OBJECT_KINDS: dict[str, type[StateObject]] = {
    Client.OTYPE: Client,
    Window.OTYPE: Window,
    Workspace.OTYPE: Workspace,
    Tab.OTYPE: Tab,
    Block.OTYPE: Block,
}


def kind_for(otype: str) -> type[StateObject]:
    """Return the class registered for ``otype``.

    Raises:
        KeyError: ``otype`` is not a known object kind.
    """
    try:
        return OBJECT_KINDS[otype]
    except KeyError:
        raise KeyError(f"Unknown object type '{otype}'") from None


# ---------------------------------------------------------------------------
# Block definitions
# ---------------------------------------------------------------------------

BLOCK_DEF_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "meta": {
            "type": "object",
            "properties": {
                MetaKey.VIEW: {"type": "string", "minLength": 1},
                MetaKey.CONTROLLER: {"type": "string"},
                MetaKey.URL: {"type": "string"},
                MetaKey.FILE: {"type": "string"},
                MetaKey.CONNECTION: {"type": "string"},
                MetaKey.EDIT: {"type": "boolean"},
            },
        },
    },
    "required": ["meta"],
}

_BLOCK_DEF_VALIDATOR = Draft202012Validator(BLOCK_DEF_SCHEMA)


@dataclass(slots=True)
class BlockDef:
    """Definition used to create a :class:`Block`.

    The meta mapping is passed through to the created block untouched.
    """

    meta: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"meta": dict(self.meta)}

    @classmethod
    def from_payload(cls, payload: Any) -> BlockDef:
        """Validate an untrusted ``{"meta": {...}}`` payload.

        Raises:
            ValueError: the payload does not match :data:`BLOCK_DEF_SCHEMA`.
        """
        problems: list[str] = []
        for issue in _BLOCK_DEF_VALIDATOR.iter_errors(payload):
            path = ".".join(str(part) for part in issue.absolute_path)
            problems.append(f"{path}: {issue.message}" if path else issue.message)
            if len(problems) >= MAX_SCHEMA_ERRORS:
                break
        if problems:
            raise ValueError("Invalid block definition: " + "; ".join(problems))
        return cls(meta=dict(payload["meta"]))
