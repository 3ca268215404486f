"""Domain models for cascading filters and listing views."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, TypeAlias

from .keys import Key, KeyKind, key_order, normalize_key, normalize_keys, read_field


class Cardinality(str, Enum):
    """Whether a level accepts one value or a set of values."""

    SINGLE = "single"
    MULTI = "multi"


@dataclass(frozen=True)
class Scalar:
    """Selection of exactly one key on a ``single`` level."""

    value: Key

    @property
    def keys(self) -> frozenset[Key]:
        return frozenset((self.value,))


@dataclass(frozen=True)
class KeySet:
    """Selection of zero or more keys on a ``multi`` level."""

    members: frozenset[Key] = frozenset()

    @property
    def keys(self) -> frozenset[Key]:
        return self.members

    def __bool__(self) -> bool:
        return bool(self.members)


# ``None`` is the empty selection of a single level; ``KeySet()`` of a multi level.
FilterValue: TypeAlias = Scalar | KeySet | None

EMPTY_SET = KeySet()


def selection_keys(value: FilterValue) -> frozenset[Key]:
    """Return the keys held by *value*; empty for no selection."""
    if value is None:
        return frozenset()
    return value.keys


@dataclass(frozen=True)
class FilterLevel:
    """One rung of a cascading filter.

    ``field`` names the record attribute holding the level key. ``parent`` is
    the id of the level whose selection scopes this level's options.
    """

    id: str
    field: str
    cardinality: Cardinality = Cardinality.SINGLE
    parent: str | None = None
    key_kind: KeyKind = KeyKind.NUMBER
    label: str = ""

    def key_of(self, record: Any) -> Key | None:
        return normalize_key(read_field(record, self.field), self.key_kind)

    def empty(self) -> FilterValue:
        return EMPTY_SET if self.cardinality is Cardinality.MULTI else None

    def coerce(self, value: Any) -> FilterValue:
        """Turn raw UI input into this level's canonical selection.

        Accepts ``Scalar``/``KeySet`` instances, a bare key, ``None``/``""``,
        or any iterable of keys. A ``single`` level given several keys keeps
        the smallest one so the result stays deterministic.
        """
        if isinstance(value, (Scalar, KeySet)):
            raw: Iterable[Any] = value.keys
        elif value is None:
            raw = ()
        elif isinstance(value, (str, bytes, int, float)):
            raw = (value,)
        elif isinstance(value, Iterable):
            raw = value
        else:
            raw = (value,)
        keys = normalize_keys(raw, self.key_kind)
        if self.cardinality is Cardinality.MULTI:
            return KeySet(keys)
        if not keys:
            return None
        return Scalar(min(keys, key=key_order))


@dataclass(frozen=True)
class OptionRecord:
    """Selectable value of one level, optionally linked to a parent key."""

    level_id: str
    key: Key
    label: str = ""
    parent_key: Key | None = None

    @property
    def display(self) -> str:
        return self.label or str(self.key)


def _frozen(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class FilterState:
    """Immutable snapshot of every active criterion of a listing view.

    ``levels`` maps level ids to selections, ``facets`` maps facet ids to
    normalised scalar values. ``search_raw`` is the text as typed and
    ``search_term`` the debounced value the predicate uses.
    """

    levels: Mapping[str, FilterValue] = field(default_factory=lambda: _frozen(None))
    facets: Mapping[str, Key] = field(default_factory=lambda: _frozen(None))
    search_raw: str = ""
    search_term: str = ""

    def selection(self, level_id: str) -> FilterValue:
        return self.levels.get(level_id)

    def with_levels(self, levels: Mapping[str, FilterValue]) -> FilterState:
        return replace(self, levels=_frozen(levels))

    def with_facet(self, facet_id: str, value: Key | None) -> FilterState:
        facets = dict(self.facets)
        if value is None:
            facets.pop(facet_id, None)
        else:
            facets[facet_id] = value
        return replace(self, facets=_frozen(facets))

    def with_search(self, raw: str | None = None, term: str | None = None) -> FilterState:
        return replace(
            self,
            search_raw=self.search_raw if raw is None else raw,
            search_term=self.search_term if term is None else term,
        )

    def active_count(self) -> int:
        """Count active criteria: one per non-empty level, facet and search term."""
        count = sum(1 for value in self.levels.values() if selection_keys(value))
        count += len(self.facets)
        if self.search_term.strip():
            count += 1
        return count


OptionSets: TypeAlias = Mapping[str, tuple[OptionRecord, ...]]


@dataclass(frozen=True)
class ActiveFilter:
    """One removable chip describing an active criterion."""

    source_id: str
    key: Key
    label: str


@dataclass(frozen=True)
class ListViewModel:
    """Projection handed to the presentation layer; never persisted."""

    visible_records: tuple[Any, ...]
    total_filtered_count: int
    current_page: int
    total_pages: int
    active_filter_count: int
    page_numbers: tuple[int, ...] = ()
    start_index: int = 0
    end_index: int = 0
    page_size: int = 0
    summary: Mapping[str, float] = field(default_factory=lambda: _frozen(None))

    @property
    def has_active_filters(self) -> bool:
        return self.active_filter_count > 0
