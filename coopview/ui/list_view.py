"""Controller composing cascading filters, search, paging and deletion."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Coroutine, Iterable, Mapping, Sequence
from typing import Any

from ..core.cascade import CascadeResolver, CascadeResult, FetchRequest
from ..core.catalog import OptionCatalog
from ..core.delete import DeleteLifecycle, DeletePhase
from ..core.errors import LoadFailure, SourceError
from ..core.keys import Key, sort_keys
from ..core.listing import ListingSchema
from ..core.model import (
    ActiveFilter,
    FilterState,
    ListViewModel,
    OptionRecord,
    OptionSets,
    selection_keys,
)
from ..core.pagination import Page, paginate, windowed_page_numbers
from ..core.search import apply_filters, distinct_values
from ..core.summary import summarize
from ..i18n import _
from ..log import logger
from ..services.sources import ChangeNotifier, DeleteSink, OptionSource, RecordSource
from ..settings import ListingSettings
from ..telemetry import log_debug_payload, log_event
from ..util.cancellation import CancellationEvent
from .debounce import Debouncer, Scheduler

ViewListener = Callable[[ListViewModel], None]
_REOPENABLE = (DeletePhase.CONFIRMING, DeletePhase.FAILED)


def _coerce_rows(rows: Any) -> list[Any]:
    """Accept list payloads, a single mapping, or nothing."""
    if rows is None:
        return []
    if isinstance(rows, Mapping):
        return [rows]
    return list(rows)


class ListViewOrchestrator:
    """Own the filter state, records and option catalog of one listing view.

    Construct on mount of the view and call :meth:`unmount` on teardown.
    Synchronous handlers (level, facet, search and paging setters) update
    the view model before returning; collaborator calls run as tasks on the
    running event loop and are reconciled when they complete. Results that
    arrive after :meth:`unmount`, or that were superseded by a newer
    request, are discarded.
    """

    def __init__(
        self,
        schema: ListingSchema,
        *,
        records: RecordSource,
        options: OptionSource | None = None,
        deleter: DeleteSink | None = None,
        on_change: ChangeNotifier | None = None,
        settings: ListingSettings | None = None,
        scheduler: Scheduler | None = None,
        initial_records: Sequence[Any] | None = None,
    ) -> None:
        self.schema = schema
        self.settings = settings or ListingSettings()
        self.catalog = OptionCatalog(schema.graph)
        self.resolver = CascadeResolver(schema.graph, self.catalog)
        self._record_source = records
        self._option_source = options
        self._deleter = deleter
        self._on_change = on_change
        self._cancellation = CancellationEvent()
        self._cancellation.add_callback(self._cancel_tasks)
        self._tasks: set[asyncio.Task[Any]] = set()
        self._listeners: list[ViewListener] = []

        self._records: list[Any] = []
        self._initial_records: Sequence[Any] | None = None
        self._filtered: list[Any] = []
        self._summary: Mapping[str, float] = {}
        self._page_number = 1
        self._page_size = self.settings.page_size
        self._page: Page = paginate((), self._page_size, 1)

        self._pending_fetches: dict[str, FetchRequest] = {}
        self._failed_fetches: dict[str, tuple[FetchRequest, SourceError]] = {}
        self._option_retries: dict[FetchRequest, int] = {}
        self._deferred_fetches: list[FetchRequest] = []
        self._load_generation = 0
        self._retry_count = 0
        self.mounted = False
        self.loading = False
        self.load_error: LoadFailure | None = None
        self.warnings: list[str] = []
        self.revision = 0

        self._deletes: dict[Any, DeleteLifecycle] = {}
        self._active_delete: Any | None = None

        self._debouncer: Debouncer[str] = Debouncer(
            self.settings.search_debounce_seconds, self._settle_search, scheduler
        )
        initial = self.resolver.initial()
        self._state: FilterState = initial.state
        self._options: OptionSets = initial.options
        self._deferred_fetches.extend(initial.fetches)
        if initial_records is not None:
            self._initial_records = initial_records
            self._records = _coerce_rows(initial_records)
        self._refilter()

    # lifecycle -------------------------------------------------------
    def mount(self) -> None:
        """Start loading root options and, without initial records, the record list.

        Must be called from a running event loop.
        """
        if self.mounted or self._cancellation.cancelled:
            return
        self.mounted = True
        deferred, self._deferred_fetches = self._deferred_fetches, []
        self._start_fetches(deferred)
        if self._initial_records is None:
            self._start_load(show_loading=True)
        self._notify()

    def unmount(self) -> None:
        """Tear the view down: stop timers and ignore every in-flight result."""
        self._debouncer.cancel()
        self._cancellation.set()
        self._listeners.clear()
        self.mounted = False

    @property
    def torn_down(self) -> bool:
        return self._cancellation.cancelled

    async def wait_idle(self) -> None:
        """Wait until no collaborator call is in flight."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def subscribe(self, listener: ViewListener) -> Callable[[], None]:
        """Call *listener* with the view model after every change."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # records ---------------------------------------------------------
    def set_initial_records(self, records: Sequence[Any]) -> bool:
        """Replace local records when a new externally supplied list arrives.

        Only a different list object counts as new; passing the same list
        again keeps the current page.
        """
        if records is self._initial_records:
            return False
        self._initial_records = records
        self._records = _coerce_rows(records)
        self._page_number = 1
        self._refilter()
        return True

    def reload(self) -> None:
        """Refresh records in the background without raising ``loading``."""
        self._start_load(show_loading=False)

    def retry(self) -> bool:
        """Retry a failed load when the failure allows it."""
        failure = self.load_error
        if failure is None or not failure.can_retry:
            return False
        self._retry_count += 1
        self._start_load(show_loading=True)
        return True

    @property
    def records(self) -> list[Any]:
        return list(self._records)

    # filters ---------------------------------------------------------
    @property
    def state(self) -> FilterState:
        return self._state

    def set_level(self, level_id: str, value: Any) -> None:
        """Select *value* on a cascade level, resetting its descendants."""
        result = self.resolver.on_level_changed(self._state, self._options, level_id, value)
        if self._apply_cascade(result):
            log_debug_payload(
                "CASCADE",
                {
                    "screen": self.schema.name,
                    "level": level_id,
                    "selection": selection_keys(self._state.selection(level_id)),
                    "reset": result.reset_levels,
                    "fetches": [fetch.level_id for fetch in result.fetches],
                },
            )
            self._page_number = 1
            self._refilter()

    def set_facet(self, facet_id: str, value: Any) -> None:
        """Set an independent facet; blank values remove the constraint."""
        facet = self.schema.facet(facet_id)
        key = facet.coerce(value)
        if self._state.facets.get(facet_id) == key:
            return
        self._state = self._state.with_facet(facet_id, key)
        self._page_number = 1
        self._refilter()

    def set_search(self, text: str) -> None:
        """Record typed search text; filtering follows once typing settles."""
        text = text or ""
        self._state = self._state.with_search(raw=text)
        self._debouncer.push(text)
        self._notify()

    def flush_search(self) -> bool:
        """Apply pending search text immediately."""
        return self._debouncer.flush()

    def remove_filter_value(self, source_id: str, key: Any = None) -> None:
        """Remove one active chip identified by level or facet id and key."""
        if source_id in self.schema.graph:
            if key is None:
                self.set_level(source_id, None)
                return
            result = self.resolver.remove_key(self._state, self._options, source_id, key)
            if self._apply_cascade(result):
                self._page_number = 1
                self._refilter()
            return
        self.set_facet(source_id, None)

    def clear_filters(self) -> None:
        """Reset every level, facet and the search text."""
        self._debouncer.cancel()
        result = self.resolver.clear_all(self._state, self._options)
        cleared = FilterState(levels=result.state.levels)
        self._apply_cascade(
            CascadeResult(cleared, result.options, result.fetches, reset_levels=result.reset_levels)
        )
        self._page_number = 1
        self._refilter()

    def level_options(self, level_id: str) -> tuple[OptionRecord, ...]:
        """Return the options currently offered for *level_id*."""
        self.schema.graph.get(level_id)
        return tuple(self._options.get(level_id, ()))

    def is_level_enabled(self, level_id: str) -> bool:
        """Dependent levels stay disabled until their parent has a selection."""
        parent = self.schema.graph.parent_of(level_id)
        return parent is None or bool(selection_keys(self._state.selection(parent.id)))

    def is_level_loading(self, level_id: str) -> bool:
        return level_id in self._pending_fetches

    @property
    def filters_loading(self) -> bool:
        return bool(self._pending_fetches)

    def facet_choices(self, facet_id: str) -> list[Key]:
        """Return distinct values of a facet across the loaded records."""
        return distinct_values(self._records, self.schema.facet(facet_id))

    def active_filters(self) -> list[ActiveFilter]:
        """Describe every active criterion as a removable chip."""
        chips: list[ActiveFilter] = []
        for level in self.schema.levels:
            for key in sort_keys(selection_keys(self._state.selection(level.id))):
                option = self.catalog.find(level.id, key)
                label = option.display if option is not None else str(key)
                chips.append(ActiveFilter(level.id, key, label))
        for facet in self.schema.facets:
            value = self._state.facets.get(facet.id)
            if value is not None:
                chips.append(ActiveFilter(facet.id, value, str(value)))
        return chips

    def option_failure(self, level_id: str) -> LoadFailure | None:
        """Return the last failed option load of *level_id*, if any."""
        entry = self._failed_fetches.get(level_id)
        if entry is None:
            return None
        request, error = entry
        return LoadFailure.from_error(
            error,
            retry_count=self._option_retries.get(request, 0),
            max_retries=self.settings.max_load_retries,
            non_retryable=self.settings.non_retryable_statuses,
        )

    def retry_options(self) -> bool:
        """Fetch again the option sets whose last load failed.

        Each request is retried at most ``max_load_retries`` times and never
        after a non-retryable status.
        """
        requests = []
        for level_id, (request, _error) in list(self._failed_fetches.items()):
            if not self.resolver.is_current(self._state, request):
                del self._failed_fetches[level_id]
                continue
            failure = self.option_failure(level_id)
            if failure is None or not failure.can_retry:
                continue
            del self._failed_fetches[level_id]
            self._option_retries[request] = self._option_retries.get(request, 0) + 1
            requests.append(request)
        if not requests:
            return False
        self.warnings.clear()
        self._start_fetches(requests)
        self._notify()
        return True

    def dismiss_warnings(self) -> None:
        self.warnings.clear()
        self._notify()

    # paging ----------------------------------------------------------
    @property
    def page(self) -> Page:
        return self._page

    def set_page(self, number: int) -> None:
        self._page_number = number
        self._repage()

    def next_page(self) -> None:
        self.set_page(self._page.number + 1)

    def previous_page(self) -> None:
        self.set_page(self._page.number - 1)

    def set_page_size(self, size: int) -> bool:
        """Switch to one of the configured page sizes and go back to page 1."""
        if size not in self.settings.page_size_choices:
            logger.debug("Ignoring unsupported page size %s", size)
            return False
        self._page_size = size
        self._page_number = 1
        self._repage()
        return True

    # deletion --------------------------------------------------------
    def request_delete(self, record: Any) -> bool:
        """Open the delete confirmation for *record*.

        The confirmation surface shows one record at a time. Switching it to
        another record closes the previous confirmation unless that deletion
        is being submitted. A record already waiting for confirmation or
        retry is shown again.
        """
        if self._deleter is None:
            raise RuntimeError(f"Listing {self.schema.name} has no delete sink")
        key = self.schema.key_of(record)
        lifecycle = self._deletes.get(key)
        if lifecycle is not None and lifecycle.phase in _REOPENABLE:
            self._show_delete(key)
            return True
        if lifecycle is None:
            lifecycle = DeleteLifecycle(
                self._deleter,
                key_of=self.schema.key_of,
                label_of=self.schema.label_of,
                on_deleted=self._on_record_deleted,
                on_transition=lambda phase, key=key: self._on_delete_transition(key, phase),
                cancellation=self._cancellation,
            )
            self._deletes[key] = lifecycle
        if not lifecycle.request_delete(record):
            return False
        self._show_delete(key)
        return True

    def _show_delete(self, key: Any) -> None:
        previous = self._deletes.get(self._active_delete)
        if self._active_delete != key and previous is not None and previous.phase in _REOPENABLE:
            previous.cancel()
        self._active_delete = key
        self._notify()

    def delete_lifecycle(self, key: Any = None) -> DeleteLifecycle | None:
        """Return the lifecycle for *key*, or the one shown on the confirmation surface."""
        if key is None:
            key = self._active_delete
        return self._deletes.get(key)

    @property
    def delete_phase(self) -> DeletePhase:
        lifecycle = self.delete_lifecycle()
        return DeletePhase.IDLE if lifecycle is None else lifecycle.phase

    async def confirm_delete(self, key: Any = None) -> bool:
        lifecycle = self.delete_lifecycle(key)
        if lifecycle is None:
            return False
        return await lifecycle.confirm()

    def cancel_delete(self, key: Any = None) -> bool:
        lifecycle = self.delete_lifecycle(key)
        if lifecycle is None:
            return False
        return lifecycle.cancel()

    def _on_delete_transition(self, key: Any, phase: DeletePhase) -> None:
        if phase is DeletePhase.IDLE:
            self._deletes.pop(key, None)
            if self._active_delete == key:
                self._active_delete = None
        self._notify()

    def _on_record_deleted(self, record: Any) -> None:
        key = self.schema.key_of(record)
        self._records = [item for item in self._records if self.schema.key_of(item) != key]
        self._refilter()
        self._notify_change()

    # view model ------------------------------------------------------
    @property
    def view_model(self) -> ListViewModel:
        return self._view

    @property
    def summary(self) -> Mapping[str, float]:
        return dict(self._summary)

    def _refilter(self) -> None:
        self._filtered = apply_filters(self._records, self.schema, self._state)
        self._summary = summarize(self.schema.summary, self._filtered)
        self.revision += 1
        logger.debug(
            "%s: %d of %d records match (revision %d)",
            self.schema.name,
            len(self._filtered),
            len(self._records),
            self.revision,
        )
        self._repage()

    def _repage(self) -> None:
        self._page = paginate(self._filtered, self._page_size, self._page_number)
        self._page_number = self._page.number
        self._view = ListViewModel(
            visible_records=self._page.items,
            total_filtered_count=len(self._filtered),
            current_page=self._page.number,
            total_pages=self._page.total_pages,
            active_filter_count=self._state.active_count(),
            page_numbers=tuple(
                windowed_page_numbers(
                    self._page.number, self._page.total_pages, self.settings.page_window
                )
            ),
            start_index=self._page.start_index,
            end_index=self._page.end_index,
            page_size=self._page_size,
            summary=dict(self._summary),
        )
        self._notify()

    def _notify(self) -> None:
        if self._cancellation.cancelled:
            return
        for listener in list(self._listeners):
            listener(self._view)

    def _notify_change(self) -> None:
        if self._on_change is None or self._cancellation.cancelled:
            return
        try:
            self._on_change()
        except Exception:
            logger.exception("Change notification for %s failed", self.schema.name)

    # search ----------------------------------------------------------
    def _settle_search(self, text: str) -> None:
        if self._cancellation.cancelled:
            return
        if text == self._state.search_term:
            return
        self._state = self._state.with_search(term=text)
        self._page_number = 1
        self._refilter()

    # cascade plumbing ------------------------------------------------
    def _apply_cascade(self, result: CascadeResult) -> bool:
        if not result.changed:
            return False
        self._state = result.state
        self._options = result.options
        for level_id in result.reset_levels:
            self._pending_fetches.pop(level_id, None)
            self._failed_fetches.pop(level_id, None)
        self._start_fetches(result.fetches)
        return True

    def _start_fetches(self, requests: Iterable[FetchRequest]) -> None:
        for request in requests:
            if self._option_source is None:
                logger.warning(
                    "No option source for %s; level %s stays empty",
                    self.schema.name,
                    request.level_id,
                )
                continue
            if not self.mounted:
                self._deferred_fetches = [
                    item for item in self._deferred_fetches if item.level_id != request.level_id
                ]
                self._deferred_fetches.append(request)
                continue
            if self._pending_fetches.get(request.level_id) == request:
                continue
            self._pending_fetches[request.level_id] = request
            self._spawn(self._fetch_options(request), f"options:{request.level_id}")

    def _is_latest(self, request: FetchRequest) -> bool:
        return self._pending_fetches.get(
            request.level_id
        ) == request and self.resolver.is_current(self._state, request)

    async def _fetch_options(self, request: FetchRequest) -> None:
        source = self._option_source
        if source is None:
            return
        started = time.monotonic()
        payload = {
            "screen": self.schema.name,
            "level": request.level_id,
            "parent_keys": request.parent_keys,
        }
        try:
            records = await source.list_options(
                request.level_id, request.parent_keys or None
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if self._cancellation.cancelled:
                return
            if not self._is_latest(request):
                log_event("OPTIONS_FETCH_STALE", payload, level=logging.DEBUG)
                return
            error = SourceError.wrap(exc)
            self._pending_fetches.pop(request.level_id, None)
            self._apply_cascade(self.resolver.degrade(self._state, self._options, request))
            self._failed_fetches[request.level_id] = (request, error)
            level = self.schema.graph.get(request.level_id)
            self.warnings.append(
                _("Options for {level} could not be loaded: {message}").format(
                    level=level.label or level.id, message=error.message
                )
            )
            log_event(
                "OPTIONS_FETCH_FAILED",
                {**payload, "message": error.message, "status": error.status_code},
                start_time=started,
                level=logging.WARNING,
            )
            self._refilter()
            return
        if self._cancellation.cancelled:
            return
        if not self._is_latest(request):
            log_event("OPTIONS_FETCH_STALE", payload, level=logging.DEBUG)
            return
        self._pending_fetches.pop(request.level_id, None)
        self._option_retries.pop(request, None)
        self.catalog.load(
            request.level_id,
            records,
            scope=None if request.is_root else request.parent_keys,
        )
        result = self.resolver.apply_options(self._state, self._options, request)
        changed = self._apply_cascade(result)
        log_event(
            "OPTIONS_FETCH",
            {**payload, "count": len(self._options.get(request.level_id, ()))},
            start_time=started,
        )
        if changed:
            self._refilter()

    # record loading --------------------------------------------------
    def _start_load(self, *, show_loading: bool) -> None:
        self._load_generation += 1
        if show_loading:
            self.loading = True
        self._spawn(
            self._load_records(self._load_generation, show_loading=show_loading),
            f"records:{self.schema.name}",
        )
        self._notify()

    async def _load_records(self, generation: int, *, show_loading: bool) -> None:
        started = time.monotonic()
        try:
            rows = await self._record_source.list_records()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if self._cancellation.cancelled or generation != self._load_generation:
                return
            error = SourceError.wrap(exc)
            self.load_error = LoadFailure.from_error(
                error,
                retry_count=self._retry_count,
                max_retries=self.settings.max_load_retries,
                non_retryable=self.settings.non_retryable_statuses,
            )
            self.loading = False
            log_event(
                "LIST_LOAD_FAILED",
                {
                    "screen": self.schema.name,
                    "message": error.message,
                    "status": error.status_code,
                    "retry_count": self._retry_count,
                },
                start_time=started,
                level=logging.WARNING,
            )
            self._notify()
            return
        if self._cancellation.cancelled or generation != self._load_generation:
            return
        self._records = _coerce_rows(rows)
        self._retry_count = 0
        self.load_error = None
        self.loading = False
        if show_loading:
            self._page_number = 1
        log_event(
            "LIST_LOAD",
            {"screen": self.schema.name, "count": len(self._records)},
            start_time=started,
        )
        self._refilter()
        self._notify_change()

    # task plumbing ---------------------------------------------------
    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> None:
        if self._cancellation.cancelled:
            coro.close()
            return
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _cancel_tasks(self) -> None:
        for task in list(self._tasks):
            task.cancel()
