"""Declarative description of one listing screen."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import LevelGraphError
from .keys import Key, KeyKind, normalize_key, read_field
from .levels import LevelGraph
from .model import FilterLevel


@dataclass(frozen=True)
class FacetSpec:
    """Independent scalar criterion compared by exact normalised equality."""

    id: str
    field: str
    key_kind: KeyKind = KeyKind.TEXT
    label: str = ""

    def key_of(self, record: Any) -> Key | None:
        return normalize_key(read_field(record, self.field), self.key_kind)

    def coerce(self, value: Any) -> Key | None:
        return normalize_key(value, self.key_kind)


class MetricKind(str, Enum):
    """Aggregations available for summary cards."""

    COUNT = "count"
    SUM = "sum"
    NON_BLANK = "non_blank"
    DISTINCT = "distinct"


@dataclass(frozen=True)
class SummaryMetric:
    """One summary card value computed over the filtered records."""

    id: str
    kind: MetricKind = MetricKind.COUNT
    field: str | None = None

    def __post_init__(self) -> None:
        if self.kind is not MetricKind.COUNT and not self.field:
            raise LevelGraphError(f"Summary metric {self.id} needs a field")


@dataclass(frozen=True)
class ListingSchema:
    """Levels, facets, search fields and summary metrics of a listing.

    Construction validates the level graph and rejects facet ids that
    collide with level ids or with each other.
    """

    name: str
    primary_key: str
    levels: Sequence[FilterLevel] = ()
    facets: Sequence[FacetSpec] = ()
    search_fields: Sequence[str] = ()
    summary: Sequence[SummaryMetric] = ()
    record_label: str | None = None
    graph: LevelGraph = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "levels", tuple(self.levels))
        object.__setattr__(self, "facets", tuple(self.facets))
        object.__setattr__(self, "search_fields", tuple(self.search_fields))
        object.__setattr__(self, "summary", tuple(self.summary))
        object.__setattr__(self, "graph", LevelGraph(self.levels))
        seen = {level.id for level in self.levels}
        for facet in self.facets:
            if facet.id in seen:
                raise LevelGraphError(f"Duplicate filter id: {facet.id}")
            seen.add(facet.id)
        metric_ids = [metric.id for metric in self.summary]
        if len(metric_ids) != len(set(metric_ids)):
            raise LevelGraphError(f"Duplicate summary metric in {self.name}")

    def facet(self, facet_id: str) -> FacetSpec:
        for facet in self.facets:
            if facet.id == facet_id:
                return facet
        raise LevelGraphError(f"Unknown facet: {facet_id}")

    def key_of(self, record: Any) -> Any:
        """Return the primary key of *record*."""
        return read_field(record, self.primary_key)

    def label_of(self, record: Any) -> str:
        """Return a human-readable name for *record*."""
        if self.record_label:
            label = read_field(record, self.record_label)
            if label not in (None, ""):
                return str(label)
        return str(self.key_of(record))
