"""Logging setup for the deskstate service layer.

Store work runs in worker threads, so records carry the thread name. The
journal logs one line per mutation; it stays at INFO unless a per-logger
level asks for more (``DESKSTATE_LOG_LEVELS="deskstate.core.journal=debug"``).
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Mapping

__all__ = ["setup_logging", "get_log_path", "parse_level", "parse_logger_levels"]

_DEFAULT_LOG_DIR = Path.home() / ".deskstate" / "logs"
_LOG_FILE_NAME = "deskstate.log"
_LOG_LEVELS_ENV = "DESKSTATE_LOG_LEVELS"
# Loggers that flood DEBUG output: one line per journaled mutation or event loop step.
_CHATTY_LOGGERS: Mapping[str, int] = {
    "deskstate.core.journal": logging.INFO,
    "asyncio": logging.WARNING,
}
_CONFIGURED = False
_LOG_PATH: Path | None = None


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    logger_levels: Mapping[str, int] | str | None = None,
    force: bool = False,
) -> Path:
    """Configure root logging with a rotating file and an optional stderr handler.

    ``logger_levels`` maps logger names to levels, either as a mapping or in
    the ``name=level,name=level`` form; it defaults to ``DESKSTATE_LOG_LEVELS``.
    Returns the log file path.
    """

    global _CONFIGURED, _LOG_PATH
    if _CONFIGURED and not force and _LOG_PATH is not None:
        return _LOG_PATH

    if logger_levels is None:
        logger_levels = os.environ.get(_LOG_LEVELS_ENV, "")
    if isinstance(logger_levels, str):
        logger_levels = parse_logger_levels(logger_levels)

    target_dir = _resolve_log_dir(log_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / _LOG_FILE_NAME

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    handlers: list[logging.Handler] = [file_handler]

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    _apply_logger_levels(level, logger_levels)

    _CONFIGURED = True
    _LOG_PATH = log_path
    return log_path


def parse_level(value: str | int | None, *, debug: bool = False) -> int:
    """Translate a level name such as ``"warning"`` into a logging level.

    ``debug`` wins over ``value``; unknown names fall back to INFO.
    """

    if debug:
        return logging.DEBUG
    if isinstance(value, int):
        return value
    if not value:
        return logging.INFO
    level = logging.getLevelName(value.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def parse_logger_levels(spec: str) -> dict[str, int]:
    """Parse ``"deskstate.store=debug,deskstate.events=warning"``.

    Raises:
        ValueError: an entry is not ``name=level`` or names an unknown level.
    """

    levels: dict[str, int] = {}
    for entry in spec.split(","):
        entry = entry.strip()
        if not entry:
            continue
        name, sep, raw_level = entry.partition("=")
        name = name.strip()
        if not sep or not name:
            raise ValueError(f"Logger level '{entry}' must use NAME=LEVEL syntax.")
        level = logging.getLevelName(raw_level.strip().upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level '{raw_level.strip()}' for logger '{name}'.")
        levels[name] = level
    return levels


def get_log_path() -> Path | None:
    """Return the currently configured log file if available."""

    return _LOG_PATH


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    env_override = os.environ.get("DESKSTATE_LOG_DIR")
    return Path(log_dir or env_override or _DEFAULT_LOG_DIR).expanduser()


def _apply_logger_levels(root_level: int, overrides: Mapping[str, int]) -> None:
    for logger_name, floor in _CHATTY_LOGGERS.items():
        if logger_name not in overrides:
            logging.getLogger(logger_name).setLevel(max(floor, root_level))
    for logger_name, level in overrides.items():
        logging.getLogger(logger_name).setLevel(level)
