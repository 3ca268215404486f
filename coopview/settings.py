"""Typed listing settings with Pydantic validation."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import tomllib
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

DEFAULT_PAGE_SIZE = 10
DEFAULT_PAGE_SIZE_CHOICES = (5, 10, 25, 50)
DEFAULT_SEARCH_DEBOUNCE_MS = 300
DEFAULT_PAGE_WINDOW = 5
DEFAULT_MAX_LOAD_RETRIES = 3
DEFAULT_NON_RETRYABLE_STATUSES = (404,)


def _positive_int_or_default(value: int | str | None, default: int) -> int:
    """Return ``value`` as a positive integer, ``default`` when unset or non-positive."""
    if value is None:
        return default
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return default
        try:
            numeric = int(raw)
        except ValueError:  # pragma: no cover - delegated to Pydantic
            return value  # type: ignore[return-value]
    else:
        if isinstance(value, bool):
            raise ValueError("Boolean is not a valid numeric setting")
        numeric = int(value)
    if numeric <= 0:
        return default
    return numeric


class ListingSettings(BaseModel):
    """Paging, search and retry behaviour of listing views."""

    model_config = ConfigDict(validate_assignment=True)

    page_size: int = DEFAULT_PAGE_SIZE
    page_size_choices: list[int] = Field(
        default_factory=lambda: list(DEFAULT_PAGE_SIZE_CHOICES)
    )
    search_debounce_ms: int = DEFAULT_SEARCH_DEBOUNCE_MS
    page_window: int = DEFAULT_PAGE_WINDOW
    max_load_retries: int = DEFAULT_MAX_LOAD_RETRIES
    non_retryable_statuses: list[int] = Field(
        default_factory=lambda: list(DEFAULT_NON_RETRYABLE_STATUSES)
    )

    @field_validator("page_size", mode="before")
    @classmethod
    def _normalize_page_size(cls, value: int | str | None) -> int:
        return _positive_int_or_default(value, DEFAULT_PAGE_SIZE)

    @field_validator("search_debounce_ms", mode="before")
    @classmethod
    def _normalize_debounce(cls, value: int | str | None) -> int:
        return _positive_int_or_default(value, DEFAULT_SEARCH_DEBOUNCE_MS)

    @field_validator("page_window", mode="before")
    @classmethod
    def _normalize_page_window(cls, value: int | str | None) -> int:
        return _positive_int_or_default(value, DEFAULT_PAGE_WINDOW)

    @field_validator("max_load_retries", mode="before")
    @classmethod
    def _normalize_max_load_retries(cls, value: int | str | None) -> int:
        return _positive_int_or_default(value, DEFAULT_MAX_LOAD_RETRIES)

    @field_validator("page_size_choices", mode="before")
    @classmethod
    def _normalize_page_size_choices(cls, value: object) -> list[int]:
        """Keep positive unique choices in ascending order."""
        if value is None:
            return list(DEFAULT_PAGE_SIZE_CHOICES)
        if isinstance(value, (str, bytes)) or not hasattr(value, "__iter__"):
            raise ValueError("page_size_choices must be a list of integers")
        choices = sorted({int(item) for item in value if int(item) > 0})
        return choices or list(DEFAULT_PAGE_SIZE_CHOICES)

    @property
    def search_debounce_seconds(self) -> float:
        """Return the debounce delay in seconds for timer APIs."""
        return self.search_debounce_ms / 1000.0


class LoggingSettings(BaseModel):
    """Logging destination and verbosity."""

    model_config = ConfigDict(validate_assignment=True)

    level: int = Field(default=logging.INFO)
    log_dir: str | None = None

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, value: int | str | None) -> int:
        """Accept level names such as ``"debug"`` as well as numbers."""
        if value is None:
            return logging.INFO
        if isinstance(value, str):
            raw = value.strip()
            if not raw:
                return logging.INFO
            if raw.isdigit():
                return int(raw)
            resolved = logging.getLevelName(raw.upper())
            if not isinstance(resolved, int):
                raise ValueError(f"Unknown log level: {value}")
            return resolved
        return value

    @field_validator("log_dir", mode="before")
    @classmethod
    def _normalize_log_dir(cls, value: str | Path | None) -> str | None:
        """Convert empty strings to ``None``."""
        if value is None:
            return None
        text = str(value).strip()
        return text or None


class AppSettings(BaseModel):
    """Aggregate settings for the application."""

    model_config = ConfigDict(validate_assignment=True)

    listing: ListingSettings = Field(default_factory=ListingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def to_dict(self) -> dict:
        """Return settings as a plain dictionary."""
        return self.model_dump()


def load_app_settings(path: str | Path) -> AppSettings:
    """Load :class:`AppSettings` from *path* with validation.

    Format is detected by file extension: ``.toml`` uses :mod:`tomllib`,
    everything else is treated as JSON.  Any validation errors are wrapped into
    :class:`ValueError` with a human-friendly message.
    """
    p = Path(path)
    with p.open("rb") as fh:
        data = tomllib.load(fh) if p.suffix.lower() == ".toml" else json.load(fh)
    try:
        return AppSettings.model_validate(data)
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc
