"""In-memory filtering of listing records."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from typing import Any

from .keys import Key, read_field, sort_keys
from .listing import FacetSpec, ListingSchema
from .model import Cardinality, FilterLevel, FilterState, FilterValue, selection_keys

Predicate = Callable[[Any], bool]


def level_predicate(level: FilterLevel, value: FilterValue) -> Predicate | None:
    """Return a predicate for *level* or ``None`` when the level is unconstrained."""
    keys = selection_keys(value)
    if not keys:
        return None
    if level.cardinality is Cardinality.SINGLE and len(keys) == 1:
        (expected,) = keys
        return lambda record: level.key_of(record) == expected
    return lambda record: level.key_of(record) in keys


def facet_predicate(facet: FacetSpec, value: Key | None) -> Predicate | None:
    """Return an equality predicate for *facet*; blank values impose nothing."""
    expected = facet.coerce(value)
    if expected is None:
        return None
    return lambda record: facet.key_of(record) == expected


def search_predicate(term: str | None, fields: Sequence[str]) -> Predicate | None:
    """Return a case-insensitive substring predicate over *fields*.

    A record matches when any configured field contains the term. Numbers
    are matched on their text form, so ``"33.5"`` finds a latitude of
    ``33.52``.
    """
    needle = (term or "").strip().casefold()
    if not needle or not fields:
        return None
    columns = tuple(fields)

    def matches(record: Any) -> bool:
        for name in columns:
            value = read_field(record, name)
            if value is None:
                continue
            if needle in str(value).casefold():
                return True
        return False

    return matches


def compile_predicate(schema: ListingSchema, state: FilterState) -> Predicate:
    """Combine every active criterion of *state* into one AND predicate."""
    predicates: list[Predicate] = []
    for level in schema.levels:
        predicate = level_predicate(level, state.selection(level.id))
        if predicate is not None:
            predicates.append(predicate)
    for facet in schema.facets:
        predicate = facet_predicate(facet, state.facets.get(facet.id))
        if predicate is not None:
            predicates.append(predicate)
    predicate = search_predicate(state.search_term, schema.search_fields)
    if predicate is not None:
        predicates.append(predicate)
    if not predicates:
        return lambda record: True
    checks = tuple(predicates)
    return lambda record: all(check(record) for check in checks)


def apply_filters(
    records: Iterable[Any],
    schema: ListingSchema,
    state: FilterState,
) -> list[Any]:
    """Return records of *records* matching *state*, preserving order."""
    predicate = compile_predicate(schema, state)
    return [record for record in records if predicate(record)]


def distinct_values(records: Iterable[Any], facet: FacetSpec) -> list[Key]:
    """Return the sorted distinct normalised values of *facet* in *records*."""
    seen: set[Key] = set()
    for record in records:
        key = facet.key_of(record)
        if key is not None:
            seen.add(key)
    return sort_keys(seen)
