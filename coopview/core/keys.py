"""Canonical key representation for filter levels and facets.

Backend payloads mix ``7`` and ``"7"`` for the same code depending on the
endpoint. Every level and facet therefore declares a :class:`KeyKind` and all
comparisons happen between values passed through :func:`normalize_key` with
that kind.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, TypeAlias

Key: TypeAlias = int | float | str


class KeyKind(str, Enum):
    """How raw values are coerced before comparison."""

    NUMBER = "number"
    TEXT = "text"
    CASEFOLD = "casefold"


def _normalize_number(value: Any) -> int | float | None:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return int(value) if value.is_integer() else value
    text = str(value).strip()
    if not text:
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    if number == number.to_integral_value():
        return int(number)
    return float(number)


def normalize_key(value: Any, kind: KeyKind) -> Key | None:
    """Return the canonical form of *value* or ``None`` when it is blank.

    ``NUMBER`` keys parse numeric strings (``" 07 "`` becomes ``7``) and fold
    integral floats to ``int``; unparsable input yields ``None`` so it never
    matches. ``TEXT`` keys are stripped strings and ``CASEFOLD`` keys are
    additionally case-folded.
    """
    if value is None:
        return None
    if kind is KeyKind.NUMBER:
        return _normalize_number(value)
    text = str(value).strip()
    if not text:
        return None
    if kind is KeyKind.CASEFOLD:
        return text.casefold()
    return text


def normalize_keys(values: Iterable[Any], kind: KeyKind) -> frozenset[Key]:
    """Normalise every value, dropping blanks."""
    keys: set[Key] = set()
    for value in values:
        key = normalize_key(value, kind)
        if key is not None:
            keys.add(key)
    return frozenset(keys)


def read_field(record: Any, field: str) -> Any:
    """Return ``field`` from a mapping or attribute-style record."""
    if isinstance(record, Mapping):
        return record.get(field)
    return getattr(record, field, None)


def key_order(key: Key) -> tuple[bool, Key]:
    """Sort key placing numbers before text."""
    return (isinstance(key, str), key)


def sort_keys(keys: Iterable[Key]) -> list[Key]:
    return sorted(keys, key=key_order)
