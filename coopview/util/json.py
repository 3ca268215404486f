"""JSON serialisation helpers."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any


def _sort_key(value: Any) -> tuple[str, str]:
    return (type(value).__name__, repr(value))


def make_json_safe(value: Any, *, sort_sets: bool = True) -> Any:
    """Return a structure compatible with :func:`json.dumps`.

    Mappings get string keys, tuples become lists, sets and frozensets become
    lists (sorted when ``sort_sets`` is true so output is stable), enums are
    replaced by their value and dataclass instances by their fields. Anything
    else that JSON cannot represent falls back to :func:`repr`.
    """

    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return make_json_safe(value.value, sort_sets=sort_sets)
    if is_dataclass(value) and not isinstance(value, type):
        return make_json_safe(asdict(value), sort_sets=sort_sets)
    if isinstance(value, Mapping):
        return {
            (key if isinstance(key, str) else str(key)): make_json_safe(
                item, sort_sets=sort_sets
            )
            for key, item in value.items()
        }
    if isinstance(value, (set, frozenset)):
        items = sorted(value, key=_sort_key) if sort_sets else list(value)
        return [make_json_safe(item, sort_sets=sort_sets) for item in items]
    if isinstance(value, (list, tuple)):
        return [make_json_safe(item, sort_sets=sort_sets) for item in value]
    return repr(value)


__all__ = ["make_json_safe"]
