"""Tests for state object serialization and block definitions."""

from __future__ import annotations

import pytest

from deskstate.store.objects import (
    Block,
    BlockDef,
    Client,
    RuntimeOpts,
    Tab,
    Window,
    Workspace,
    kind_for,
)


class TestSerialization:
    def test_client_payload_keys(self) -> None:
        client = Client(oid="c1", version=3, window_ids=["w1", "w2"], tos_agreed=1700)
        assert client.to_dict() == {
            "otype": "client",
            "oid": "c1",
            "version": 3,
            "windowids": ["w1", "w2"],
            "tosagreed": 1700,
            "meta": {},
        }

    def test_window_geometry(self) -> None:
        window = Window(oid="w1", workspace_id="ws", active_tab_id="t", pos=(5, 6), size=(800, 600))
        payload = window.to_dict()
        assert payload["pos"] == {"x": 5, "y": 6}
        assert payload["winsize"] == {"width": 800, "height": 600}
        assert Window.from_dict(payload) == window

    def test_block_runtime_opts_omitted_when_empty(self) -> None:
        assert "runtimeopts" not in Block(oid="b").to_dict()
        payload = Block(oid="b", runtime_opts=RuntimeOpts(24, 80)).to_dict()
        assert payload["runtimeopts"] == {"termsize": {"rows": 24, "cols": 80}}

    def test_from_dict_tolerates_missing_fields(self) -> None:
        tab = Tab.from_dict({"oid": "t1"})
        assert tab.block_ids == []
        assert tab.version == 0
        workspace = Workspace.from_dict({"oid": "ws", "tabids": "not-a-list"})
        assert workspace.tab_ids == []

    def test_kind_registry(self) -> None:
        assert kind_for("block") is Block
        with pytest.raises(KeyError):
            kind_for("widget")


class TestBlockDef:
    def test_valid_payload(self) -> None:
        block_def = BlockDef.from_payload({"meta": {"view": "web", "url": "https://example.com"}})
        assert block_def.meta["url"] == "https://example.com"

    def test_unknown_meta_keys_pass_through(self) -> None:
        block_def = BlockDef.from_payload({"meta": {"view": "term", "custom:flag": 1}})
        assert block_def.meta["custom:flag"] == 1

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"meta": []},
            {"meta": {"view": ""}},
            {"meta": {"view": "preview", "edit": "yes"}},
            "meta",
        ],
    )
    def test_invalid_payloads(self, payload) -> None:
        with pytest.raises(ValueError, match="Invalid block definition"):
            BlockDef.from_payload(payload)
