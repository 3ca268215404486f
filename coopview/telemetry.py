"""Structured events on the coopview logger."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

from .log import logger
from .util.json import make_json_safe

SENSITIVE_KEYS = frozenset(
    {"authorization", "token", "secret", "password", "api_key", "cookie"}
)
REDACTED = "[REDACTED]"


def sanitize(value: Any) -> Any:
    """Return a copy of *value* with sensitive mapping keys redacted at any depth."""
    if isinstance(value, Mapping):
        return {
            key: REDACTED
            if isinstance(key, str) and key.lower() in SENSITIVE_KEYS
            else sanitize(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [sanitize(item) for item in value]
    return value


def _event_record(event: str, payload: Mapping[str, Any] | None) -> dict[str, Any]:
    return {"event": event, "payload": make_json_safe(sanitize(payload or {}))}


def log_event(
    event: str,
    payload: Mapping[str, Any] | None = None,
    *,
    start_time: float | None = None,
    level: int = logging.INFO,
) -> None:
    """Log *event* with a redacted, JSON-safe *payload*.

    *start_time* is a :func:`time.monotonic` reading; when given, the elapsed
    milliseconds are attached as ``duration_ms``.
    """
    data = _event_record(event, payload)
    if start_time is not None:
        data["duration_ms"] = int((time.monotonic() - start_time) * 1000)
    logger.log(level, event, extra={"json": data})


def log_debug_payload(event: str, payload: Mapping[str, Any] | None = None) -> None:
    """Log *event* at ``DEBUG`` only when debug output is enabled."""
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(event, extra={"json": _event_record(event, payload)})
