"""Tests for record predicates."""

import pytest

from coopview.core.keys import KeyKind
from coopview.core.listing import FacetSpec, ListingSchema
from coopview.core.model import Cardinality, FilterLevel, FilterState, KeySet, Scalar
from coopview.core.search import apply_filters, compile_predicate, distinct_values

pytestmark = pytest.mark.unit


SCHEMA = ListingSchema(
    name="parcels",
    primary_key="refpar",
    levels=(
        FilterLevel("culture", "codcul", Cardinality.MULTI),
        FilterLevel("variety", "codvar", parent="culture"),
    ),
    facets=(
        FacetSpec("certif", "certif"),
        FacetSpec("region", "region", KeyKind.CASEFOLD),
    ),
    search_fields=("refpar", "latitude", "irriga"),
)


def sample_parcels():
    return [
        {"refpar": "P-001", "codcul": 7, "codvar": "101", "certif": "BIO", "region": "Souss", "latitude": 33.52, "irriga": "goutte"},
        {"refpar": "P-002", "codcul": "7", "codvar": 102, "certif": "GAP", "region": "souss", "latitude": 31.1, "irriga": None},
        {"refpar": "P-003", "codcul": 8, "codvar": 201, "certif": "BIO", "region": "Gharb", "latitude": 34.0, "irriga": "Gravitaire"},
        {"refpar": "X-104", "codcul": 9, "codvar": 301, "certif": "", "region": None, "latitude": None, "irriga": "Goutte"},
    ]


def _refs(records):
    return [record["refpar"] for record in records]


def _state(levels=None, facets=None, term=""):
    state = FilterState().with_levels(levels or {})
    for facet_id, value in (facets or {}).items():
        state = state.with_facet(facet_id, value)
    return state.with_search(raw=term, term=term)


def test_empty_state_matches_everything():
    assert _refs(apply_filters(sample_parcels(), SCHEMA, FilterState())) == [
        "P-001",
        "P-002",
        "P-003",
        "X-104",
    ]


def test_level_selection_matches_normalised_keys():
    state = _state(levels={"culture": KeySet(frozenset({7}))})
    assert _refs(apply_filters(sample_parcels(), SCHEMA, state)) == ["P-001", "P-002"]
    state = _state(levels={"culture": KeySet(frozenset({7, 8})), "variety": Scalar(101)})
    assert _refs(apply_filters(sample_parcels(), SCHEMA, state)) == ["P-001"]


def test_facets_search_and_levels_combine_with_and():
    state = _state(
        levels={"culture": KeySet(frozenset({7, 8}))},
        facets={"certif": "BIO"},
        term="goutte",
    )
    assert _refs(apply_filters(sample_parcels(), SCHEMA, state)) == ["P-001"]


def test_search_is_case_insensitive_over_any_field():
    records = sample_parcels()

    def found(term):
        return _refs(apply_filters(records, SCHEMA, _state(term=term)))

    assert found("GOUTTE") == ["P-001", "X-104"]
    assert found("33.5") == ["P-001"]
    assert found("x-1") == ["X-104"]
    assert found("   ") == _refs(records)


def test_casefold_facet_matches_regardless_of_case():
    state = _state(facets={"region": "SOUSS"})
    assert _refs(apply_filters(sample_parcels(), SCHEMA, state)) == ["P-001", "P-002"]
    state = _state(facets={"region": "gharb"})
    assert _refs(apply_filters(sample_parcels(), SCHEMA, state)) == ["P-003"]


def test_filtering_is_deterministic_and_leaves_input_untouched():
    records = sample_parcels()
    snapshot = [dict(record) for record in records]
    state = _state(facets={"certif": "BIO"}, term="p-")
    first = apply_filters(records, SCHEMA, state)
    second = apply_filters(list(records), SCHEMA, state)
    assert first == second
    assert records == snapshot
    predicate = compile_predicate(SCHEMA, state)
    assert [predicate(record) for record in records] == [True, False, True, False]


def test_distinct_values_skip_blanks_and_sort():
    assert distinct_values(sample_parcels(), SCHEMA.facet("certif")) == ["BIO", "GAP"]
    assert distinct_values(sample_parcels(), SCHEMA.facet("region")) == ["gharb", "souss"]
