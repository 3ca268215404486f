"""Keep dependent filter levels consistent when an ancestor changes.

The resolver is stateless apart from read access to the level graph and the
option catalog: every operation takes the current :class:`FilterState` and
visible option sets and returns new ones, plus the option fetches needed for
levels the catalog cannot answer yet.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from ..log import logger
from .catalog import OptionCatalog
from .keys import Key, key_order
from .levels import LevelGraph
from .model import (
    FilterLevel,
    FilterState,
    FilterValue,
    KeySet,
    OptionRecord,
    OptionSets,
    Scalar,
    selection_keys,
)


@dataclass(frozen=True)
class FetchRequest:
    """Request for the options of ``level_id`` under ``parent_keys``.

    ``parent_keys`` is the parent selection that triggered the request and
    acts as its causality token: a response is only applied while the parent
    still holds exactly these keys. Root levels use an empty token.
    """

    level_id: str
    parent_keys: frozenset[Key] = frozenset()

    @property
    def is_root(self) -> bool:
        return not self.parent_keys


@dataclass(frozen=True)
class CascadeResult:
    """Outcome of a cascade operation."""

    state: FilterState
    options: OptionSets
    fetches: tuple[FetchRequest, ...] = ()
    changed: bool = True
    reset_levels: tuple[str, ...] = field(default=())


class CascadeResolver:
    """Recompute dependent selections and option sets for a level graph."""

    def __init__(self, levels: LevelGraph, catalog: OptionCatalog) -> None:
        self.levels = levels
        self.catalog = catalog

    # entry points ----------------------------------------------------
    def initial(self, state: FilterState | None = None) -> CascadeResult:
        """Return empty selections with root options taken from the catalog.

        Roots the catalog has not loaded yet are returned as fetch requests.
        """
        state = state or FilterState()
        return self._reset_all(state, {}, request_missing_roots=True)

    def clear_all(self, state: FilterState, options: OptionSets) -> CascadeResult:
        """Empty every selection; roots keep their options, descendants lose theirs."""
        return self._reset_all(state, options, request_missing_roots=True)

    def on_level_changed(
        self,
        state: FilterState,
        options: OptionSets,
        level_id: str,
        new_value: Any,
    ) -> CascadeResult:
        """Select *new_value* on *level_id* and reset everything below it.

        The value is coerced to the level's cardinality and restricted to the
        keys currently offered for the level, so a descendant selection can
        never reference a parent outside the ancestor's selection. Selecting
        the value already held is a no-op.
        """
        level = self.levels.get(level_id)
        value = self._restrict(level, level.coerce(new_value), state, options)
        if value == state.selection(level_id) or (
            not selection_keys(value) and not selection_keys(state.selection(level_id))
        ):
            return CascadeResult(state, options, changed=False)

        levels = dict(state.levels)
        new_options = dict(options)
        fetches: list[FetchRequest] = []
        reset: list[str] = []
        levels[level_id] = value
        for child in self.levels.children(level_id):
            self._reset_branch(child, selection_keys(value), levels, new_options, fetches, reset)
        logger.debug(
            "Level %s set to %s; reset %s", level_id, sorted(map(str, selection_keys(value))), reset
        )
        return CascadeResult(
            state.with_levels(levels),
            MappingProxyType(new_options),
            tuple(fetches),
            reset_levels=tuple(reset),
        )

    def remove_key(
        self,
        state: FilterState,
        options: OptionSets,
        level_id: str,
        key: Any,
    ) -> CascadeResult:
        """Drop one key from the selection of *level_id*."""
        level = self.levels.get(level_id)
        target = level.coerce(key)
        remaining = selection_keys(state.selection(level_id)) - selection_keys(target)
        return self.on_level_changed(state, options, level_id, remaining)

    # fetch reconciliation --------------------------------------------
    def is_current(self, state: FilterState, request: FetchRequest) -> bool:
        """Return whether *request* still matches the parent selection."""
        if request.level_id not in self.levels:
            return False
        parent = self.levels.parent_of(request.level_id)
        if parent is None:
            return True
        return selection_keys(state.selection(parent.id)) == request.parent_keys

    def apply_options(
        self,
        state: FilterState,
        options: OptionSets,
        request: FetchRequest,
    ) -> CascadeResult:
        """Refresh the options of ``request.level_id`` from the catalog.

        Call after the fetched records were loaded into the catalog. Stale
        requests leave everything untouched.
        """
        if not self.is_current(state, request):
            return CascadeResult(state, options, changed=False)
        level = self.levels.get(request.level_id)
        new_options = dict(options)
        new_options[level.id] = self._options_for(level, request.parent_keys)
        levels = dict(state.levels)
        current = levels.get(level.id, level.empty())
        valid = {record.key for record in new_options[level.id]}
        narrowed = self._with_keys(level, selection_keys(current) & valid)
        fetches: list[FetchRequest] = []
        reset: list[str] = []
        if narrowed != current:
            levels[level.id] = narrowed
            for child in self.levels.children(level.id):
                self._reset_branch(
                    child, selection_keys(narrowed), levels, new_options, fetches, reset
                )
        return CascadeResult(
            state.with_levels(levels),
            MappingProxyType(new_options),
            tuple(fetches),
            reset_levels=tuple(reset),
        )

    def degrade(
        self,
        state: FilterState,
        options: OptionSets,
        request: FetchRequest,
    ) -> CascadeResult:
        """Empty the level of a failed fetch and everything below it."""
        if not self.is_current(state, request):
            return CascadeResult(state, options, changed=False)
        level = self.levels.get(request.level_id)
        levels = dict(state.levels)
        new_options = dict(options)
        reset: list[str] = []
        self._reset_branch(level, frozenset(), levels, new_options, [], reset)
        return CascadeResult(
            state.with_levels(levels),
            MappingProxyType(new_options),
            reset_levels=tuple(reset),
        )

    # helpers ---------------------------------------------------------
    def _reset_all(
        self,
        state: FilterState,
        options: OptionSets,
        *,
        request_missing_roots: bool,
    ) -> CascadeResult:
        levels: dict[str, FilterValue] = {}
        new_options: dict[str, tuple[OptionRecord, ...]] = {}
        fetches: list[FetchRequest] = []
        reset: list[str] = []
        for root in self.levels.roots():
            levels[root.id] = root.empty()
            if self.catalog.is_loaded(root.id):
                new_options[root.id] = self.catalog.options(root.id)
            else:
                new_options[root.id] = tuple(options.get(root.id, ()))
                if request_missing_roots:
                    fetches.append(FetchRequest(root.id))
            for child in self.levels.children(root.id):
                self._reset_branch(child, frozenset(), levels, new_options, fetches, reset)
        return CascadeResult(
            state.with_levels(levels),
            MappingProxyType(new_options),
            tuple(fetches),
            reset_levels=tuple(reset),
        )

    def _reset_branch(
        self,
        level: FilterLevel,
        parent_keys: frozenset[Key],
        levels: dict[str, FilterValue],
        options: dict[str, tuple[OptionRecord, ...]],
        fetches: list[FetchRequest],
        reset: list[str],
    ) -> None:
        levels[level.id] = level.empty()
        reset.append(level.id)
        if not parent_keys:
            options[level.id] = ()
        elif self.catalog.covers(level.id, parent_keys):
            options[level.id] = self._options_for(level, parent_keys)
        else:
            options[level.id] = ()
            fetches.append(FetchRequest(level.id, frozenset(parent_keys)))
        for child in self.levels.children(level.id):
            self._reset_branch(child, frozenset(), levels, options, fetches, reset)

    def _options_for(
        self, level: FilterLevel, parent_keys: frozenset[Key]
    ) -> tuple[OptionRecord, ...]:
        if level.parent is None:
            return self.catalog.options(level.id)
        return tuple(self.catalog.children_of(level.id, parent_keys))

    def _restrict(
        self,
        level: FilterLevel,
        value: FilterValue,
        state: FilterState,
        options: OptionSets,
    ) -> FilterValue:
        keys = selection_keys(value)
        if not keys:
            return level.empty()
        if level.parent is not None:
            if not selection_keys(state.selection(level.parent)):
                logger.debug("Ignoring selection on %s without parent selection", level.id)
                return level.empty()
            allowed: Iterable[Key] | None = (record.key for record in options.get(level.id, ()))
        elif self.catalog.is_loaded(level.id):
            allowed = (record.key for record in self.catalog.options(level.id))
        else:
            allowed = None
        if allowed is None:
            return value
        valid = keys & frozenset(allowed)
        if valid != keys:
            logger.debug(
                "Dropped unknown keys %s from %s", sorted(map(str, keys - valid)), level.id
            )
        return self._with_keys(level, valid)

    @staticmethod
    def _with_keys(level: FilterLevel, keys: frozenset[Key]) -> FilterValue:
        if not keys:
            return level.empty()
        if isinstance(level.empty(), KeySet):
            return KeySet(keys)
        return Scalar(min(keys, key=key_order))
