"""Pytest configuration for the coopview test suite."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass

import pytest

import coopview.log as log_module
from coopview import i18n
from coopview.log import logger


def _normalise_marker_name(name: str) -> str:
    return name.replace("-", "_")


def _normalise_prefix(value: str) -> str:
    value = value.replace("\\", "/").strip()
    return value.rstrip("/")


def _path_matches_prefixes(path: str, prefixes: Sequence[str]) -> bool:
    return any(path == prefix or path.startswith(f"{prefix}/") for prefix in prefixes)


_SUITE_STASH_KEY = object()


@dataclass(frozen=True)
class SuiteDefinition:
    """Describe how a logical test suite should filter collected tests."""

    name: str
    include_any: Sequence[str] = ()
    exclude_any: Sequence[str] = ()
    include_by_default: bool = True
    exclude_paths: Sequence[str] = ()
    description: str = ""
    when_to_run: str = ""

    def should_run(self, item: pytest.Item) -> bool:
        markers = {_normalise_marker_name(marker.name) for marker in item.iter_markers()}
        include = {_normalise_marker_name(name) for name in self.include_any}
        exclude = {_normalise_marker_name(name) for name in self.exclude_any}
        path = item.nodeid.split("::", 1)[0].replace("\\", "/")

        if include and markers & include:
            return True
        if not self.include_by_default:
            return False
        prefixes = tuple(_normalise_prefix(prefix) for prefix in self.exclude_paths)
        return not (markers & exclude or (prefixes and _path_matches_prefixes(path, prefixes)))


SUITES: Mapping[str, SuiteDefinition] = {
    "core": SuiteDefinition(
        name="core",
        exclude_any=("service",),
        description="Pure engine checks: cascade, search, paging, deletion, settings",
        when_to_run="Every local edit",
    ),
    "service": SuiteDefinition(
        name="service",
        description="Core suite plus list view flows against in-memory sources",
        when_to_run="When touching the list view controller or collaborators",
    ),
}


def _format_suite_table() -> str:
    headers = ("Suite", "When to run", "Description")
    rows = [(suite.name, suite.when_to_run, suite.description) for suite in SUITES.values()]
    widths = [
        max(len(str(value)) for value in column)
        for column in zip(headers, *rows, strict=True)
    ]
    fmt = "  ".join(f"{{:<{width}}}" for width in widths)
    lines = [fmt.format(*headers), fmt.format(*("-" * width for width in widths))]
    lines.extend(fmt.format(*row) for row in rows)
    return "\n".join(lines)


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--suite",
        action="store",
        choices=sorted(SUITES),
        help="Select the logical test suite to run",
    )
    parser.addoption(
        "--list-suites",
        action="store_true",
        help="List available coopview suites and exit",
    )


def pytest_configure(config: pytest.Config) -> None:
    if config.getoption("--list-suites"):
        print(_format_suite_table())
        pytest.exit("suite listing requested", returncode=0)
    suite_name = config.getoption("--suite")
    if suite_name is None:
        return
    config.stash[_SUITE_STASH_KEY] = SUITES[suite_name]


@pytest.hookimpl(trylast=True)
def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    suite = config.stash.get(_SUITE_STASH_KEY, None)
    if suite is None:
        return

    selected: list[pytest.Item] = []
    deselected: list[pytest.Item] = []
    for item in items:
        if suite.should_run(item):
            selected.append(item)
        else:
            deselected.append(item)

    if deselected:
        config.hook.pytest_deselected(items=deselected)
        items[:] = selected


@pytest.fixture(autouse=True)
def _reset_translations() -> Iterator[None]:
    """Keep translations installed by one test from leaking into the next."""
    yield
    i18n.reset()


@pytest.fixture
def capture_events() -> Iterator[list[logging.LogRecord]]:
    """Collect records emitted on the ``coopview`` logger."""

    records: list[logging.LogRecord] = []

    class _Collector(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            records.append(record)

    handler = _Collector(level=logging.DEBUG)
    previous = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    try:
        yield records
    finally:
        logger.removeHandler(handler)
        logger.setLevel(previous)


@pytest.fixture
def reset_logger() -> Iterator[None]:
    """Run with an unconfigured ``coopview`` logger and restore it afterwards."""
    prev_handlers = list(logger.handlers)
    prev_level = logger.level
    prev_log_dir = log_module._log_dir
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    log_module._log_dir = None
    try:
        yield
    finally:
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()
        logger.handlers.extend(prev_handlers)
        logger.setLevel(prev_level)
        log_module._log_dir = prev_log_dir
