"""Per-level cache of option records."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import replace
from typing import Any

from ..log import logger
from .keys import Key, KeyKind, normalize_key, read_field
from .levels import LevelGraph
from .model import FilterValue, KeySet, OptionRecord, Scalar


def build_options(
    level_id: str,
    rows: Iterable[Mapping[str, Any] | Any],
    *,
    key_field: str,
    label_field: str | None = None,
    parent_field: str | None = None,
) -> list[OptionRecord]:
    """Convert raw backend rows into :class:`OptionRecord` objects.

    Keys are kept as delivered; :meth:`OptionCatalog.load` applies the
    level's normalisation. Rows without a key are skipped.
    """
    options: list[OptionRecord] = []
    for row in rows:
        key = read_field(row, key_field)
        if key is None or (isinstance(key, str) and not key.strip()):
            continue
        label = read_field(row, label_field) if label_field else None
        parent = read_field(row, parent_field) if parent_field else None
        options.append(
            OptionRecord(
                level_id=level_id,
                key=key,
                label=str(label).strip() if label not in (None, "") else "",
                parent_key=parent,
            )
        )
    return options


class OptionCatalog:
    """Cache of option records, replaced wholesale per level.

    A level may be loaded for a limited *scope* of parent keys when the
    option source only returned children of those parents. ``covers`` tells
    whether a set of parent keys can be answered from cache.
    """

    def __init__(self, levels: LevelGraph) -> None:
        self._graph = levels
        self._options: dict[str, tuple[OptionRecord, ...]] = {}
        self._scopes: dict[str, frozenset[Key] | None] = {}

    def _parent_kind(self, level_id: str) -> KeyKind:
        parent = self._graph.parent_of(level_id)
        return parent.key_kind if parent is not None else self._graph.get(level_id).key_kind

    def load(
        self,
        level_id: str,
        records: Iterable[OptionRecord],
        *,
        scope: Iterable[Key] | None = None,
    ) -> None:
        """Replace the options of *level_id*.

        Keys and parent keys are normalised with the kinds of the level and
        of its parent. Records whose key normalises to nothing are dropped;
        the first record wins for duplicate keys.
        """
        level = self._graph.get(level_id)
        parent_kind = self._parent_kind(level_id)
        seen: set[Key] = set()
        loaded: list[OptionRecord] = []
        dropped = 0
        for record in records:
            key = normalize_key(record.key, level.key_kind)
            if key is None or key in seen:
                dropped += 1
                continue
            seen.add(key)
            parent_key = (
                normalize_key(record.parent_key, parent_kind)
                if level.parent is not None
                else None
            )
            loaded.append(
                replace(record, level_id=level_id, key=key, parent_key=parent_key)
            )
        if dropped:
            logger.debug("Dropped %d blank or duplicate options for %s", dropped, level_id)
        self._options[level_id] = tuple(loaded)
        self._scopes[level_id] = None if scope is None else frozenset(scope)

    def clear(self, level_id: str) -> None:
        self._options.pop(level_id, None)
        self._scopes.pop(level_id, None)

    def is_loaded(self, level_id: str) -> bool:
        return level_id in self._options

    def covers(self, level_id: str, parent_keys: Iterable[Key]) -> bool:
        """Return whether cached options answer a lookup for *parent_keys*."""
        if level_id not in self._options:
            return False
        scope = self._scopes.get(level_id)
        if scope is None:
            return True
        return frozenset(parent_keys) <= scope

    def options(self, level_id: str) -> tuple[OptionRecord, ...]:
        return self._options.get(level_id, ())

    def find(self, level_id: str, key: Key) -> OptionRecord | None:
        for record in self._options.get(level_id, ()):
            if record.key == key:
                return record
        return None

    def children_of(
        self,
        level_id: str,
        parent_key: Key | Iterable[Key] | FilterValue,
    ) -> Iterator[OptionRecord]:
        """Yield options of *level_id* whose parent key matches.

        *parent_key* may be one key, an iterable of keys (matching any
        member), or a selection value. Unknown levels and empty parents yield
        nothing.
        """
        if level_id not in self._options:
            return
        if isinstance(parent_key, (Scalar, KeySet)):
            raw: Iterable[Any] = parent_key.keys
        elif parent_key is None:
            return
        elif isinstance(parent_key, (str, int, float)):
            raw = (parent_key,)
        else:
            raw = parent_key
        parent_kind = self._parent_kind(level_id)
        wanted = {
            key for key in (normalize_key(item, parent_kind) for item in raw) if key is not None
        }
        if not wanted:
            return
        for record in self._options[level_id]:
            if record.parent_key in wanted:
                yield record
