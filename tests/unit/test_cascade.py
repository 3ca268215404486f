"""Tests for cascade resolution between dependent filter levels."""

import pytest

from coopview.core.cascade import CascadeResolver, FetchRequest
from coopview.core.catalog import OptionCatalog
from coopview.core.levels import LevelGraph
from coopview.core.model import Cardinality, FilterLevel, KeySet, OptionRecord, Scalar

pytestmark = pytest.mark.unit


def _resolver() -> tuple[CascadeResolver, OptionCatalog]:
    graph = LevelGraph(
        [
            FilterLevel("culture", "codcul"),
            FilterLevel("variety", "codvar", Cardinality.MULTI, parent="culture"),
            FilterLevel("sub_variety", "codsvar", parent="variety"),
        ]
    )
    catalog = OptionCatalog(graph)
    catalog.load("culture", [OptionRecord("culture", key) for key in (7, 8, 9)])
    catalog.load(
        "variety",
        [
            OptionRecord("variety", 101, parent_key=7),
            OptionRecord("variety", 102, parent_key=7),
            OptionRecord("variety", 103, parent_key=9),
        ],
    )
    catalog.load(
        "sub_variety",
        [
            OptionRecord("sub_variety", 1001, parent_key=101),
            OptionRecord("sub_variety", 1002, parent_key=101),
            OptionRecord("sub_variety", 2001, parent_key=102),
        ],
    )
    return CascadeResolver(graph, catalog), catalog


def _keys(options, level_id):
    return {record.key for record in options[level_id]}


def test_culture_variety_sub_variety_walkthrough():
    resolver, _catalog = _resolver()
    result = resolver.initial()
    assert _keys(result.options, "culture") == {7, 8, 9}
    assert result.options["variety"] == ()
    assert result.fetches == ()

    result = resolver.on_level_changed(result.state, result.options, "culture", 7)
    assert result.state.selection("culture") == Scalar(7)
    assert _keys(result.options, "variety") == {101, 102}

    result = resolver.on_level_changed(result.state, result.options, "variety", {101})
    assert result.state.selection("variety") == KeySet(frozenset({101}))
    assert _keys(result.options, "sub_variety") == {1001, 1002}

    result = resolver.on_level_changed(result.state, result.options, "sub_variety", 1001)
    assert result.state.selection("sub_variety") == Scalar(1001)

    result = resolver.on_level_changed(result.state, result.options, "culture", 8)
    assert result.state.selection("variety") == KeySet()
    assert result.state.selection("sub_variety") is None
    assert result.options["variety"] == ()
    assert result.options["sub_variety"] == ()
    assert result.reset_levels == ("variety", "sub_variety")


def test_clearing_parent_clears_every_descendant():
    resolver, _ = _resolver()
    result = resolver.initial()
    result = resolver.on_level_changed(result.state, result.options, "culture", 7)
    result = resolver.on_level_changed(result.state, result.options, "variety", [101, 102])
    result = resolver.on_level_changed(result.state, result.options, "sub_variety", 2001)

    result = resolver.on_level_changed(result.state, result.options, "culture", None)
    assert result.state.selection("culture") is None
    assert result.state.selection("variety") == KeySet()
    assert result.state.selection("sub_variety") is None
    assert result.options["variety"] == ()


def test_selection_outside_visible_options_is_dropped():
    resolver, _ = _resolver()
    result = resolver.initial()
    result = resolver.on_level_changed(result.state, result.options, "culture", 7)
    result = resolver.on_level_changed(result.state, result.options, "variety", [101, 103])
    assert result.state.selection("variety") == KeySet(frozenset({101}))


def test_child_selection_requires_parent_selection():
    resolver, _ = _resolver()
    result = resolver.initial()
    result = resolver.on_level_changed(result.state, result.options, "variety", [101])
    assert not result.changed
    assert result.state.selection("variety") == KeySet()


def test_reselecting_same_value_is_a_no_op():
    resolver, _ = _resolver()
    result = resolver.initial()
    result = resolver.on_level_changed(result.state, result.options, "culture", 7)
    result = resolver.on_level_changed(result.state, result.options, "variety", [101])
    again = resolver.on_level_changed(result.state, result.options, "culture", "7")
    assert not again.changed
    assert again.state.selection("variety") == KeySet(frozenset({101}))


def test_remove_key_from_multi_selection():
    resolver, _ = _resolver()
    result = resolver.initial()
    result = resolver.on_level_changed(result.state, result.options, "culture", 7)
    result = resolver.on_level_changed(result.state, result.options, "variety", [101, 102])
    result = resolver.remove_key(result.state, result.options, "variety", 102)
    assert result.state.selection("variety") == KeySet(frozenset({101}))


def test_unloaded_levels_produce_fetch_requests_and_stale_ones_are_rejected():
    graph = LevelGraph(
        [
            FilterLevel("culture", "codcul"),
            FilterLevel("variety", "codvar", Cardinality.MULTI, parent="culture"),
        ]
    )
    catalog = OptionCatalog(graph)
    resolver = CascadeResolver(graph, catalog)
    result = resolver.initial()
    assert result.fetches == (FetchRequest("culture"),)

    catalog.load("culture", [OptionRecord("culture", key) for key in (1, 2, 3)])
    result = resolver.apply_options(result.state, result.options, FetchRequest("culture"))
    requests = []
    for key in (1, 2, 3):
        result = resolver.on_level_changed(result.state, result.options, "culture", key)
        requests.extend(result.fetches)
    assert requests == [
        FetchRequest("variety", frozenset({1})),
        FetchRequest("variety", frozenset({2})),
        FetchRequest("variety", frozenset({3})),
    ]
    state = result.state
    assert not resolver.is_current(state, requests[0])
    assert not resolver.is_current(state, requests[1])
    assert resolver.is_current(state, requests[2])

    stale = resolver.apply_options(state, result.options, requests[0])
    assert not stale.changed
    assert stale.options["variety"] == ()

    catalog.load(
        "variety",
        [OptionRecord("variety", 30, parent_key=3), OptionRecord("variety", 10, parent_key=1)],
        scope={3},
    )
    fresh = resolver.apply_options(state, result.options, requests[2])
    assert _keys(fresh.options, "variety") == {30}


def test_degrade_empties_failed_level():
    resolver, _ = _resolver()
    result = resolver.initial()
    result = resolver.on_level_changed(result.state, result.options, "culture", 7)
    degraded = resolver.degrade(
        result.state, result.options, FetchRequest("variety", frozenset({7}))
    )
    assert degraded.options["variety"] == ()
    assert degraded.options["sub_variety"] == ()
    assert degraded.state.selection("culture") == Scalar(7)


def test_every_child_selection_stays_within_parent_options():
    resolver, catalog = _resolver()
    result = resolver.initial()
    for culture, varieties in ((7, [101, 102]), (9, [103]), (7, [102])):
        result = resolver.on_level_changed(result.state, result.options, "culture", culture)
        result = resolver.on_level_changed(result.state, result.options, "variety", varieties)
        selected_culture = result.state.selection("culture").value
        for key in result.state.selection("variety").keys:
            assert catalog.find("variety", key).parent_key == selected_culture
