"""Validated forest of cascading filter levels."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence

from .errors import LevelGraphError
from .model import FilterLevel


class LevelGraph:
    """Parent/child structure of filter levels, validated on construction.

    Levels must have unique ids, every parent must be a known level and the
    parent links must not form a cycle. Violations raise
    :class:`~coopview.core.errors.LevelGraphError` immediately.
    """

    def __init__(self, levels: Iterable[FilterLevel]) -> None:
        self._levels: dict[str, FilterLevel] = {}
        for level in levels:
            if not level.id:
                raise LevelGraphError("Filter level id must not be empty")
            if level.id in self._levels:
                raise LevelGraphError(f"Duplicate filter level: {level.id}")
            self._levels[level.id] = level
        self._children: dict[str, list[str]] = {level_id: [] for level_id in self._levels}
        for level in self._levels.values():
            if level.parent is None:
                continue
            if level.parent == level.id:
                raise LevelGraphError(f"Filter level {level.id} is its own parent")
            if level.parent not in self._levels:
                raise LevelGraphError(
                    f"Filter level {level.id} references unknown parent {level.parent}"
                )
            self._children[level.parent].append(level.id)
        self._check_acyclic()

    def _check_acyclic(self) -> None:
        for start in self._levels:
            seen = {start}
            current = self._levels[start].parent
            while current is not None:
                if current in seen:
                    raise LevelGraphError(f"Filter levels form a cycle through {current}")
                seen.add(current)
                current = self._levels[current].parent

    def __contains__(self, level_id: object) -> bool:
        return level_id in self._levels

    def __iter__(self) -> Iterator[FilterLevel]:
        return iter(self._levels.values())

    def __len__(self) -> int:
        return len(self._levels)

    def get(self, level_id: str) -> FilterLevel:
        try:
            return self._levels[level_id]
        except KeyError:
            raise LevelGraphError(f"Unknown filter level: {level_id}") from None

    def parent_of(self, level_id: str) -> FilterLevel | None:
        parent = self.get(level_id).parent
        return None if parent is None else self._levels[parent]

    def children(self, level_id: str) -> Sequence[FilterLevel]:
        self.get(level_id)
        return tuple(self._levels[child] for child in self._children[level_id])

    def roots(self) -> Sequence[FilterLevel]:
        return tuple(level for level in self._levels.values() if level.parent is None)

    def descendants(self, level_id: str) -> Sequence[FilterLevel]:
        """Return every level below *level_id*, parents before children."""
        ordered: list[FilterLevel] = []
        queue = list(self.children(level_id))
        while queue:
            level = queue.pop(0)
            ordered.append(level)
            queue.extend(self.children(level.id))
        return tuple(ordered)

    def ancestors(self, level_id: str) -> Sequence[FilterLevel]:
        """Return the chain above *level_id*, nearest first."""
        chain: list[FilterLevel] = []
        parent = self.parent_of(level_id)
        while parent is not None:
            chain.append(parent)
            parent = self.parent_of(parent.id)
        return tuple(chain)
