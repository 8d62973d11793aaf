"""Logging setup driven by the ``logging`` section of the configuration."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, Mapping, Optional

DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
CONSOLE_FORMAT = "%(levelname)s | %(name)s | %(message)s"


def _close_handlers(handlers: Iterable[logging.Handler]) -> None:
    for handler in handlers:
        handler.close()


def _resolve_log_path(filename: str) -> Path:
    expanded = Path(os.path.expandvars(filename)).expanduser()
    try:
        expanded.parent.mkdir(parents=True, exist_ok=True)
        return expanded
    except OSError:
        fallback_dir = Path("./logs")
        fallback_dir.mkdir(parents=True, exist_ok=True)
        return fallback_dir / expanded.name


def _has_file_handler(root: logging.Logger, log_path: Path) -> bool:
    target = log_path.resolve()
    return any(
        isinstance(handler, RotatingFileHandler)
        and Path(handler.baseFilename).resolve() == target
        for handler in root.handlers
    )


def _add_console_handler(root: logging.Logger, settings: Mapping[str, object]) -> None:
    # RotatingFileHandler subclasses StreamHandler, so it must be excluded here.
    if any(type(handler) is logging.StreamHandler for handler in root.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(str(settings.get("format", CONSOLE_FORMAT))))
    root.addHandler(handler)


def _add_file_handler(root: logging.Logger, settings: Mapping[str, object]) -> None:
    filename = settings.get("filename")
    if not filename:
        raise ValueError("File logging enabled but no filename provided.")
    log_path = _resolve_log_path(str(filename))
    if _has_file_handler(root, log_path):
        return
    handler = RotatingFileHandler(
        log_path,
        maxBytes=int(settings.get("rotate_bytes", 1_048_576)),
        backupCount=int(settings.get("backups", 5)),
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(str(settings.get("format", DEFAULT_FORMAT))))
    root.addHandler(handler)


def setup_logging(settings: Mapping[str, object], *, force: bool = False) -> None:
    """Configure root handlers; ``force`` drops any handlers already installed."""
    root = logging.getLogger()
    root.setLevel(str(settings.get("level", "INFO")).upper())

    if force:
        _close_handlers(root.handlers)
        root.handlers.clear()

    console_settings = settings.get("console", {}) or {}
    if console_settings.get("enabled", True):
        _add_console_handler(root, console_settings)

    file_settings = settings.get("file", {}) or {}
    if file_settings.get("enabled", False):
        _add_file_handler(root, file_settings)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger under the ``image_now`` hierarchy; bare names are prefixed."""
    if not name:
        return logging.getLogger("image_now")
    if name == "image_now" or name.startswith("image_now."):
        return logging.getLogger(name)
    return logging.getLogger(f"image_now.{name}")


__all__ = ["setup_logging", "get_logger", "DEFAULT_FORMAT", "CONSOLE_FORMAT"]
