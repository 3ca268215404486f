"""Tests for listing settings."""

from __future__ import annotations

import json
import logging

import pytest

from coopview.settings import AppSettings, ListingSettings, LoggingSettings, load_app_settings

pytestmark = pytest.mark.unit


def test_defaults_match_listing_behaviour():
    settings = ListingSettings()
    assert settings.page_size == 10
    assert settings.page_size_choices == [5, 10, 25, 50]
    assert settings.search_debounce_ms == 300
    assert settings.search_debounce_seconds == pytest.approx(0.3)
    assert settings.page_window == 5
    assert settings.max_load_retries == 3
    assert settings.non_retryable_statuses == [404]


def test_blank_or_non_positive_numbers_fall_back_to_defaults():
    settings = ListingSettings(page_size="", search_debounce_ms=0, page_window=-1)
    assert (settings.page_size, settings.search_debounce_ms, settings.page_window) == (10, 300, 5)
    settings.page_size = "25"
    assert settings.page_size == 25


def test_page_size_choices_are_sorted_and_unique():
    settings = ListingSettings(page_size_choices=[50, 10, 10, 0, 20])
    assert settings.page_size_choices == [10, 20, 50]


@pytest.mark.parametrize(
    "payload",
    [
        {"page_size": True},
        {"page_size": "ten"},
        {"page_size_choices": "10,20"},
    ],
)
def test_invalid_listing_values_are_rejected(payload):
    with pytest.raises(ValueError):
        ListingSettings(**payload)


def test_logging_level_accepts_names():
    assert LoggingSettings(level="debug").level == logging.DEBUG
    assert LoggingSettings(level="").level == logging.INFO
    assert LoggingSettings(log_dir="  ").log_dir is None
    with pytest.raises(ValueError):
        LoggingSettings(level="chatty")


def test_load_toml_settings(tmp_path):
    path = tmp_path / "coopview.toml"
    path.write_text(
        "[listing]\npage_size = 25\nsearch_debounce_ms = 150\n\n[logging]\nlevel = \"warning\"\n",
        encoding="utf-8",
    )
    settings = load_app_settings(path)
    assert settings.listing.page_size == 25
    assert settings.listing.search_debounce_seconds == pytest.approx(0.15)
    assert settings.logging.level == logging.WARNING


def test_load_json_settings_and_round_trip(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"listing": {"max_load_retries": 5}}))
    settings = load_app_settings(path)
    assert settings.listing.max_load_retries == 5
    assert AppSettings.model_validate(settings.to_dict()) == settings


def test_invalid_settings_file_raises(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"listing": {"page_window": "wide"}}))
    with pytest.raises(ValueError):
        load_app_settings(path)
