"""Logging utilities for coopview."""

from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler
import os
import sys
from pathlib import Path
from typing import Any

from .util.time import utc_now_iso

LOG_DIR_ENV = "COOPVIEW_LOG_DIR"
TEXT_LOG_NAME = "coopview.log"
JSON_LOG_NAME = "coopview.jsonl"
_ROTATION_BACKUPS = 5
_TEXT_LOG_MAX_BYTES = 5 * 1024 * 1024
_JSON_LOG_MAX_BYTES = 5 * 1024 * 1024

logger = logging.getLogger("coopview")

_log_dir: Path | None = None


def _event_payload(record: logging.LogRecord) -> Any | None:
    """Return the payload of a telemetry record, ``None`` for plain messages."""
    data = getattr(record, "json", None)
    if not isinstance(data, dict) or record.msg != data.get("event"):
        return None
    return data.get("payload")


class ConsoleFormatter(logging.Formatter):
    """``LEVEL: message`` followed by the event payload for telemetry records."""

    def __init__(self) -> None:
        super().__init__("%(levelname)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        payload = _event_payload(record)
        if payload:
            text = f"{text} {json.dumps(payload, ensure_ascii=False, default=str)}"
        return text


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        extra = getattr(record, "json", None)
        data: dict[str, Any] = dict(extra) if isinstance(extra, dict) else {}
        data.setdefault("message", record.getMessage())
        data.setdefault("level", record.levelname)
        data.setdefault("logger", record.name)
        data.setdefault("timestamp", utc_now_iso())
        if record.exc_info:
            data.setdefault("exc_info", self.formatException(record.exc_info))
        return json.dumps(data, ensure_ascii=False, default=str)


class JsonlHandler(RotatingFileHandler):
    """Rotating file handler writing JSON lines."""

    def __init__(
        self,
        filename: Path | str,
        *,
        max_bytes: int | None = None,
        backup_count: int = _ROTATION_BACKUPS,
    ) -> None:
        path = Path(filename)
        path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(
            path,
            maxBytes=_JSON_LOG_MAX_BYTES if max_bytes is None else max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        self.setFormatter(JsonFormatter())


def resolve_log_dir(log_dir: str | Path | None = None) -> Path:
    """Return the log directory: *log_dir*, then ``COOPVIEW_LOG_DIR``, then ``~/.coopview/logs``."""
    if log_dir is None:
        log_dir = os.environ.get(LOG_DIR_ENV) or Path.home() / ".coopview" / "logs"
    path = Path(log_dir).expanduser().resolve()
    path.mkdir(parents=True, exist_ok=True)
    return path


def configure_logging(level: int = logging.INFO, *, log_dir: str | Path | None = None) -> Path:
    """Attach console, text and JSONL handlers to the ``coopview`` logger once.

    Console output honours *level*; both rotating file logs always capture
    ``DEBUG`` so discarded fetches and recomputations can be inspected after
    the fact. Returns the directory holding the log files. Later calls keep
    the existing handlers.
    """
    global _log_dir

    if logger.handlers and _log_dir is not None:
        return _log_dir

    directory = resolve_log_dir(log_dir)
    _log_dir = directory

    if sys.stderr is not None:
        console = logging.StreamHandler()
        console.setLevel(level)
        console.setFormatter(ConsoleFormatter())
        logger.addHandler(console)

    text_handler = RotatingFileHandler(
        directory / TEXT_LOG_NAME,
        maxBytes=_TEXT_LOG_MAX_BYTES,
        backupCount=_ROTATION_BACKUPS,
        encoding="utf-8",
    )
    text_handler.setLevel(logging.DEBUG)
    text_handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    logger.addHandler(text_handler)

    json_handler = JsonlHandler(directory / JSON_LOG_NAME)
    json_handler.setLevel(logging.DEBUG)
    logger.addHandler(json_handler)

    logger.setLevel(logging.DEBUG)
    return directory


def get_log_directory() -> Path | None:
    """Return the directory configured by :func:`configure_logging`, if any."""
    return _log_dir


__all__ = [
    "ConsoleFormatter",
    "JSON_LOG_NAME",
    "JsonFormatter",
    "JsonlHandler",
    "LOG_DIR_ENV",
    "TEXT_LOG_NAME",
    "configure_logging",
    "get_log_directory",
    "logger",
    "resolve_log_dir",
]
