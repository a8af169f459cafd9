"""Command-line front end for the deskstate service layer."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence, TextIO, get_type_hints

from .core.context import request_context
from .core.errors import InvariantViolationError, StateError
from .events import WindowEventBus
from .services.client_service import ClientService
from .services.layout import STARTER_LAYOUT
from .services.object_service import ObjectService
from .services.settings import Settings, SettingsStore
from .store.object_store import ObjectStore
from .store.objects import BlockDef, Client, MetaKey
from .utils import logging as logging_utils

_LOGGER = logging.getLogger(__name__)
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2


def configure_logging(debug: bool = False, *, level: str | None = None, force: bool = False) -> None:
    """Configure structured logging for the command-line tools."""

    resolved = logging_utils.parse_level(level, debug=debug)
    logging_utils.setup_logging(resolved, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(resolved))


def load_settings(
    path: Path | None = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        settings = active_store.load(overrides=overrides)
    except OSError as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = Settings()
    return settings


def block_def_for_target(
    target: str,
    *,
    edit: bool = False,
    connection: str | None = None,
) -> BlockDef:
    """Build the block definition that shows ``target``.

    URLs open in a web view; anything else is treated as a local path and
    opens in a preview (or editor) view. The path's parent directory must
    exist.

    Raises:
        ValueError: the parent directory of a path target does not exist.
    """
    if target.startswith(("http://", "https://")):
        return BlockDef(meta={MetaKey.VIEW: "web", MetaKey.URL: target})

    abs_file = Path(os.path.abspath(os.path.expanduser(target)))
    parent = abs_file.parent
    if not parent.is_dir():
        raise ValueError(f"parent directory does not exist: {str(parent)!r}")
    meta: dict[str, Any] = {MetaKey.VIEW: "preview", MetaKey.FILE: str(abs_file)}
    if edit:
        meta[MetaKey.EDIT] = True
    if connection:
        meta[MetaKey.CONNECTION] = connection
    return BlockDef.from_payload({"meta": meta})


def main(argv: Sequence[str] | None = None, *, stdout: TextIO | None = None) -> int:
    """Entry point invoked by the `deskstate` console script."""

    out = stdout or sys.stdout
    parser = _build_parser()
    args = parser.parse_args(argv)

    debug = args.debug or _env_flag("DESKSTATE_DEBUG", default=False)
    try:
        configure_logging(debug, level=args.log_level)
    except ValueError as exc:
        print(f"Invalid logging configuration: {exc}", file=sys.stderr)
        return EXIT_USAGE

    settings_path = args.settings_path or os.environ.get("DESKSTATE_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return EXIT_USAGE
    if args.db_path:
        cli_overrides["db_path"] = args.db_path

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)

    if args.command == "dump-settings":
        _dump_settings(settings, settings_store, out)
        return EXIT_OK

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    try:
        return asyncio.run(_run_command(args, settings, out))
    except StateError as exc:
        _LOGGER.debug("Command %s failed", args.command, exc_info=True)
        print(f"deskstate {args.command}: {exc.message}", file=sys.stderr)
        return EXIT_ERROR
    except ValueError as exc:
        print(f"deskstate {args.command}: {exc}", file=sys.stderr)
        return EXIT_ERROR


async def _run_command(args: argparse.Namespace, settings: Settings, out: TextIO) -> int:
    store = ObjectStore(settings.db_path)
    bus = WindowEventBus(max_queue_size=settings.window_queue_size)
    service = ClientService(
        store,
        bus,
        timeout=settings.request_timeout,
        bootstrap_timeout=settings.bootstrap_timeout,
        starter_layout=STARTER_LAYOUT if settings.starter_layout else (),
    )
    try:
        ctx = request_context(settings.request_timeout)
        await service.ensure_initial_data(ctx)

        if args.command == "init":
            client = await service.get_client_data()
            print(client.oid, file=out)
            return EXIT_OK

        if args.command in {"view", "edit"}:
            block_def = block_def_for_target(
                args.target,
                edit=args.command == "edit",
                connection=args.connection,
            )
            client = await service.get_client_data()
            if not client.window_ids:
                raise InvariantViolationError(message="no windows exist to show the block in")
            window_id = client.window_ids[0]
            block = await ObjectService(store, bus).create_block(
                request_context(settings.request_timeout),
                window_id,
                block_def,
                magnified=getattr(args, "magnified", False),
            )
            print(block.oid, file=out)
            return EXIT_OK

        if args.command == "focus":
            await service.focus_window(request_context(settings.request_timeout), args.window_id)
            client = await service.get_client_data()
            print(json.dumps(client.window_ids), file=out)
            return EXIT_OK

        if args.command == "agree-tos":
            batch = await service.agree_tos(request_context(settings.request_timeout))
            json.dump([record.to_dict() for record in batch], out, indent=2)
            out.write("\n")
            return EXIT_OK

        if args.command == "windows":
            client = await service.get_client_data()
            json.dump(_describe_client(client), out, indent=2)
            out.write("\n")
            return EXIT_OK
    finally:
        store.close()

    raise ValueError(f"Unknown command '{args.command}'")  # pragma: no cover - argparse guards


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deskstate",
        description="Inspect and drive the persisted desktop UI state.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.deskstate/settings.json path.",
    )
    parser.add_argument("--db-path", metavar="PATH", help="Object store database to use.")
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this invocation (repeatable).",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument("--log-level", metavar="LEVEL", help="Logging level name.")

    commands = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")
    commands.add_parser("init", help="create the client record and its first window")

    view = commands.add_parser("view", help="preview/edit a file or directory, or open a URL")
    view.add_argument("target", metavar="{file|directory|URL}")
    view.add_argument(
        "-m", "--magnified", action="store_true", help="open view in magnified mode"
    )
    view.add_argument("-c", "--connection", help="connection the file lives on")

    edit = commands.add_parser("edit", help="edit a file")
    edit.add_argument("target", metavar="{file}")
    edit.add_argument("-c", "--connection", help="connection the file lives on")

    focus = commands.add_parser("focus", help="move a window to the front of the stack")
    focus.add_argument("window_id")

    commands.add_parser("agree-tos", help="accept the terms of service and seed the layout")
    commands.add_parser("windows", help="print the client's windows")
    commands.add_parser("dump-settings", help="print the effective settings and exit")
    return parser


def _describe_client(client: Client) -> dict[str, Any]:
    return {
        "client_id": client.oid,
        "window_ids": list(client.window_ids),
        "tos_agreed": client.tos_agreed,
    }


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        overrides[key] = _coerce_value(type_hints.get(key, str), raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    if annotation is bool:
        return _parse_bool(raw_value)
    if annotation is int:
        return int(raw_value, 10)
    if annotation is float:
        return float(raw_value)
    return raw_value


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(settings: Settings, store: SettingsStore, out: TextIO) -> None:
    payload = {"path": str(store.path), "settings": asdict(settings)}
    json.dump(payload, out, indent=2, sort_keys=True)
    out.write("\n")


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
