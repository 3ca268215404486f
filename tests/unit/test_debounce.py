"""Tests for search input debouncing."""

import pytest

from coopview.ui.debounce import Debouncer
from tests.clock_utils import ManualScheduler

pytestmark = pytest.mark.unit


def test_burst_of_keystrokes_fires_once_with_last_value():
    scheduler = ManualScheduler()
    fired: list[tuple[float, str]] = []
    debouncer = Debouncer(0.3, lambda value: fired.append((scheduler.now, value)), scheduler)

    for moment, text in ((0.0, "p"), (0.05, "pa"), (0.1, "par"), (0.3, "parc")):
        scheduler.advance_to(moment)
        debouncer.push(text)

    scheduler.advance_to(0.599)
    assert fired == []
    assert debouncer.pending

    scheduler.advance_to(0.6)
    assert fired == [(pytest.approx(0.6), "parc")]
    assert not debouncer.pending
    assert scheduler.pending == 0


def test_cancel_drops_pending_value():
    scheduler = ManualScheduler()
    fired: list[str] = []
    debouncer = Debouncer(0.3, fired.append, scheduler)
    debouncer.push("abc")
    debouncer.cancel()
    scheduler.advance(1)
    assert fired == []


def test_flush_delivers_immediately():
    scheduler = ManualScheduler()
    fired: list[str] = []
    debouncer = Debouncer(0.3, fired.append, scheduler)
    assert not debouncer.flush()
    debouncer.push("abc")
    assert debouncer.flush()
    scheduler.advance(1)
    assert fired == ["abc"]
