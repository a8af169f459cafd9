"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from deskstate.services.settings import Settings, SettingsStore

_ENV_NAMES = (
    "DESKSTATE_DB_PATH",
    "DESKSTATE_DEBUG_LOGGING",
    "DESKSTATE_STARTER_LAYOUT",
    "DESKSTATE_REQUEST_TIMEOUT",
    "DESKSTATE_BOOTSTRAP_TIMEOUT",
    "DESKSTATE_WINDOW_QUEUE_SIZE",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")

    assert store.load() == Settings()


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "settings.json"
    original = Settings(
        db_path=str(tmp_path / "objects.db"),
        request_timeout=5.0,
        bootstrap_timeout=10.0,
        window_queue_size=16,
        starter_layout=False,
        debug_logging=True,
    )

    SettingsStore(path).save(original)

    assert SettingsStore(path).load() == original
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["version"] == 1
    assert not path.with_suffix(".tmp").exists()


def test_invalid_json_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    assert SettingsStore(path).load() == Settings()


def test_unknown_keys_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"request_timeout": 3.5, "theme": "dark"}), encoding="utf-8")

    settings = SettingsStore(path).load()

    assert settings.request_timeout == 3.5


def test_cli_overrides_apply_and_skip_unknown_fields(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")

    settings = store.load(overrides={"window_queue_size": 8, "bogus": 1, "db_path": None})

    assert settings.window_queue_size == 8
    assert settings.db_path == Settings().db_path


def test_env_overrides_win_over_cli(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("DESKSTATE_DB_PATH", "/srv/state.db")
    monkeypatch.setenv("DESKSTATE_STARTER_LAYOUT", "off")
    monkeypatch.setenv("DESKSTATE_DEBUG_LOGGING", "yes")
    monkeypatch.setenv("DESKSTATE_REQUEST_TIMEOUT", "0.25")
    monkeypatch.setenv("DESKSTATE_WINDOW_QUEUE_SIZE", "32")

    settings = SettingsStore(tmp_path / "settings.json").load(
        overrides={"db_path": "/tmp/cli.db", "window_queue_size": 4}
    )

    assert settings.db_path == "/srv/state.db"
    assert settings.starter_layout is False
    assert settings.debug_logging is True
    assert settings.request_timeout == 0.25
    assert settings.window_queue_size == 32


def test_invalid_numeric_env_override_is_ignored(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("DESKSTATE_BOOTSTRAP_TIMEOUT", "soon")
    monkeypatch.setenv("DESKSTATE_WINDOW_QUEUE_SIZE", "lots")

    settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings.bootstrap_timeout == Settings().bootstrap_timeout
    assert settings.window_queue_size == Settings().window_queue_size
