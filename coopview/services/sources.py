"""Data-access collaborators consumed by listing views."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Protocol, runtime_checkable

from ..core.keys import Key
from ..core.model import OptionRecord

ChangeNotifier = Callable[[], None]


@runtime_checkable
class RecordSource(Protocol):
    """Load the records of one listing."""

    async def list_records(self) -> Sequence[Any]:
        """Return every record; raise :class:`~coopview.core.errors.SourceError` on failure."""


@runtime_checkable
class OptionSource(Protocol):
    """Load selectable options for a filter level."""

    async def list_options(
        self,
        level_id: str,
        parent_keys: frozenset[Key] | None = None,
    ) -> Sequence[OptionRecord]:
        """Return options of *level_id*, optionally limited to *parent_keys*.

        Sources may ignore *parent_keys* and return every option of the
        level; the catalog filters by parent anyway.
        """


@runtime_checkable
class DeleteSink(Protocol):
    """Delete one record on the backend."""

    async def delete_record(self, record_id: Any) -> None:
        """Delete *record_id*; raise on failure."""
