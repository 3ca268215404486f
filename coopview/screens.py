"""Listing presets for the cooperative management screens."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from .core.catalog import build_options
from .core.errors import CoopViewError
from .core.keys import KeyKind
from .core.listing import FacetSpec, ListingSchema, MetricKind, SummaryMetric
from .core.model import Cardinality, FilterLevel, OptionRecord


@dataclass(frozen=True)
class OptionFields:
    """Columns of a backend option row for one level."""

    key: str
    label: str | None = None
    parent: str | None = None

    def build(self, level_id: str, rows: Iterable[Mapping[str, Any] | Any]) -> list[OptionRecord]:
        return build_options(
            level_id,
            rows,
            key_field=self.key,
            label_field=self.label,
            parent_field=self.parent,
        )


# Parcel levels form a single chain: culture -> variety group -> variety ->
# sub-variety. Each level has exactly one parent, so variety stays disabled
# until a variety group is chosen, and its options are fetched for the
# selected group only. Selecting a culture alone does not enable variety.
PARCELS = ListingSchema(
    name="parcels",
    primary_key="refpar",
    levels=(
        FilterLevel("culture", "codcul", Cardinality.MULTI, label="Culture"),
        FilterLevel("variety_group", "codgrpvar", parent="culture", label="Variety group"),
        FilterLevel("variety", "codvar", Cardinality.MULTI, parent="variety_group", label="Variety"),
        FilterLevel("sub_variety", "codsvar", parent="variety", label="Sub-variety"),
    ),
    facets=(
        FacetSpec("traite", "traite", label="Treated"),
        FacetSpec("certif", "certif", label="Certification"),
        FacetSpec("couverture", "couverture", label="Cover"),
        FacetSpec("orchard", "refver", KeyKind.NUMBER, label="Orchard"),
    ),
    search_fields=("refpar", "latitude", "longitude", "irriga"),
    summary=(
        SummaryMetric("total"),
        SummaryMetric("area", MetricKind.SUM, "suppar"),
        SummaryMetric("trees", MetricKind.SUM, "nbrarb"),
        SummaryMetric("irrigated", MetricKind.NON_BLANK, "irriga"),
    ),
)

PARCEL_OPTION_FIELDS: Mapping[str, OptionFields] = {
    "culture": OptionFields("codcul", "nomcul"),
    "variety_group": OptionFields("codgrpvar", "nomgrpvar", "codcul"),
    "variety": OptionFields("codvar", "nomvar", "codgrpvar"),
    "sub_variety": OptionFields("codsvar", "nomsvar", "codvar"),
}

ORCHARDS = ListingSchema(
    name="orchards",
    primary_key="refver",
    facets=(
        FacetSpec("certif", "certif", label="Certification"),
        FacetSpec("region", "region", KeyKind.CASEFOLD, label="Region"),
        FacetSpec("blocker", "blocker", label="Blocked"),
    ),
    search_fields=("nomver", "libelle", "douar", "region", "locver", "technicien", "refver"),
    summary=(SummaryMetric("total"),),
    record_label="nomver",
)

DECLARATIONS = ListingSchema(
    name="declarations",
    primary_key="id",
    levels=(FilterLevel("variety", "codvar", label="Variety"),),
    facets=(
        FacetSpec("real_orchard", "refverReel", KeyKind.NUMBER, label="Real orchard"),
        FacetSpec("declared_orchard", "refverNreel", KeyKind.NUMBER, label="Declared orchard"),
        FacetSpec("station", "refstat", KeyKind.NUMBER, label="Station"),
    ),
    search_fields=("id", "refverReel", "refverNreel", "refstat", "codvar"),
    summary=(
        SummaryMetric("total"),
        SummaryMetric("real_orchards", MetricKind.DISTINCT, "refverReel"),
        SummaryMetric("declared_orchards", MetricKind.DISTINCT, "refverNreel"),
    ),
)

DECLARATION_OPTION_FIELDS: Mapping[str, OptionFields] = {
    "variety": OptionFields("codvar", "nomvar"),
}

PRODUCERS = ListingSchema(
    name="producers",
    primary_key="refadh",
    facets=(
        FacetSpec("certif", "certif", label="Certification"),
        FacetSpec("type", "type", KeyKind.CASEFOLD, label="Type"),
    ),
    search_fields=("nomadh", "nompro", "cinadh", "viladh", "teladh"),
    summary=(SummaryMetric("total"),),
    record_label="nomadh",
)

SCREENS: Mapping[str, ListingSchema] = {
    schema.name: schema for schema in (PARCELS, ORCHARDS, DECLARATIONS, PRODUCERS)
}

OPTION_FIELDS: Mapping[str, Mapping[str, OptionFields]] = {
    PARCELS.name: PARCEL_OPTION_FIELDS,
    DECLARATIONS.name: DECLARATION_OPTION_FIELDS,
}


def get_screen(name: str) -> ListingSchema:
    """Return the listing preset called *name*."""
    try:
        return SCREENS[name]
    except KeyError:
        known = ", ".join(sorted(SCREENS))
        raise CoopViewError(f"Unknown screen {name!r}; expected one of {known}") from None


def option_fields(screen: str, level_id: str) -> OptionFields:
    """Return the backend columns describing options of *level_id* on *screen*."""
    try:
        return OPTION_FIELDS[screen][level_id]
    except KeyError:
        raise CoopViewError(f"No option columns for {screen}.{level_id}") from None
