"""Composition root wiring settings, logging and listing views."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

from . import i18n
from .log import configure_logging, logger
from .screens import get_screen
from .services.sources import ChangeNotifier, DeleteSink, OptionSource, RecordSource
from .settings import AppSettings, load_app_settings
from .ui.debounce import Scheduler
from .ui.list_view import ListViewOrchestrator


class ApplicationContext:
    """Shared settings and factories for the listing screens."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.settings = settings or AppSettings()
        self._scheduler = scheduler
        self.log_dir: Path | None = None

    @classmethod
    def from_file(cls, path: str | Path, **kwargs: Any) -> ApplicationContext:
        """Build a context from a ``.toml`` or JSON settings file."""
        return cls(load_app_settings(path), **kwargs)

    def configure(
        self,
        *,
        locale_dir: str | Path | None = None,
        languages: Iterable[str] | None = None,
    ) -> Path:
        """Set up logging from ``settings.logging`` and optionally translations.

        Returns the directory receiving the log files.
        """
        options = self.settings.logging
        self.log_dir = configure_logging(options.level, log_dir=options.log_dir)
        if locale_dir is not None:
            i18n.install(locale_dir, languages)
        logger.debug("coopview configured; logs in %s", self.log_dir)
        return self.log_dir

    def open_listing(
        self,
        screen: str,
        *,
        records: RecordSource,
        options: OptionSource | None = None,
        deleter: DeleteSink | None = None,
        on_change: ChangeNotifier | None = None,
        initial_records: Sequence[Any] | None = None,
    ) -> ListViewOrchestrator:
        """Return an unmounted view for the preset *screen*."""
        return ListViewOrchestrator(
            get_screen(screen),
            records=records,
            options=options,
            deleter=deleter,
            on_change=on_change,
            settings=self.settings.listing,
            scheduler=self._scheduler,
            initial_records=initial_records,
        )
