"""Tests for the option catalog."""

import pytest

from coopview.core.catalog import OptionCatalog, build_options
from coopview.core.keys import KeyKind
from coopview.core.levels import LevelGraph
from coopview.core.model import Cardinality, FilterLevel, KeySet, OptionRecord, Scalar

pytestmark = pytest.mark.unit


def _catalog() -> OptionCatalog:
    return OptionCatalog(
        LevelGraph(
            [
                FilterLevel("culture", "codcul"),
                FilterLevel("variety", "codvar", Cardinality.MULTI, parent="culture"),
                FilterLevel("station", "station", key_kind=KeyKind.CASEFOLD),
            ]
        )
    )


def test_load_normalises_keys_and_drops_blank_or_duplicate_records():
    catalog = _catalog()
    catalog.load(
        "variety",
        [
            OptionRecord("variety", "101", "Nour", parent_key="7"),
            OptionRecord("variety", 101, "Duplicate", parent_key=7),
            OptionRecord("variety", "", "Blank", parent_key=7),
            OptionRecord("variety", 103, parent_key=9),
        ],
    )
    options = catalog.options("variety")
    assert [(o.key, o.label, o.parent_key) for o in options] == [
        (101, "Nour", 7),
        (103, "", 9),
    ]
    assert options[1].display == "103"


def test_children_of_accepts_keys_iterables_and_selections():
    catalog = _catalog()
    catalog.load(
        "variety",
        [
            OptionRecord("variety", 101, parent_key=7),
            OptionRecord("variety", 102, parent_key=7),
            OptionRecord("variety", 103, parent_key=9),
        ],
    )
    assert [o.key for o in catalog.children_of("variety", 7)] == [101, 102]
    assert [o.key for o in catalog.children_of("variety", "9")] == [103]
    assert [o.key for o in catalog.children_of("variety", [7, 9])] == [101, 102, 103]
    assert [o.key for o in catalog.children_of("variety", Scalar(9))] == [103]
    assert [o.key for o in catalog.children_of("variety", KeySet(frozenset({7})))] == [101, 102]
    assert list(catalog.children_of("variety", None)) == []
    assert list(catalog.children_of("culture", 7)) == []


def test_scoped_load_covers_only_requested_parents():
    catalog = _catalog()
    assert not catalog.covers("variety", {7})
    catalog.load("variety", [OptionRecord("variety", 101, parent_key=7)], scope={7})
    assert catalog.covers("variety", {7})
    assert not catalog.covers("variety", {7, 8})
    catalog.load("variety", [OptionRecord("variety", 101, parent_key=7)])
    assert catalog.covers("variety", {8})
    catalog.clear("variety")
    assert not catalog.is_loaded("variety")


def test_find_uses_normalised_keys():
    catalog = _catalog()
    catalog.load("station", [OptionRecord("station", " ST-01 ", "North")])
    assert catalog.find("station", "st-01").label == "North"
    assert catalog.find("station", "other") is None


def test_build_options_maps_backend_columns():
    rows = [
        {"codvar": 101, "nomvar": "Nour", "codgrpvar": 4},
        {"codvar": None, "nomvar": "Missing"},
        {"codvar": 102, "nomvar": "", "codgrpvar": 4},
    ]
    options = build_options(
        "variety", rows, key_field="codvar", label_field="nomvar", parent_field="codgrpvar"
    )
    assert options == [
        OptionRecord("variety", 101, "Nour", 4),
        OptionRecord("variety", 102, "", 4),
    ]
