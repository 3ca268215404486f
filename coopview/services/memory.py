"""In-memory collaborators for previews, fixtures and offline use."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from ..core.errors import NotFoundError
from ..core.keys import read_field
from ..core.model import OptionRecord


class InMemoryRecordSource:
    """Serve and delete records held in a list.

    Implements both :class:`~coopview.services.sources.RecordSource` and
    :class:`~coopview.services.sources.DeleteSink`.
    """

    def __init__(self, records: Iterable[Any], *, primary_key: str) -> None:
        self._records = list(records)
        self._primary_key = primary_key

    @property
    def records(self) -> list[Any]:
        return list(self._records)

    async def list_records(self) -> Sequence[Any]:
        return list(self._records)

    async def delete_record(self, record_id: Any) -> None:
        for index, record in enumerate(self._records):
            if read_field(record, self._primary_key) == record_id:
                del self._records[index]
                return
        raise NotFoundError(f"No record with {self._primary_key}={record_id!r}")


class InMemoryOptionSource:
    """Serve option records grouped by level id."""

    def __init__(self, options: Mapping[str, Iterable[OptionRecord]]) -> None:
        self._options = {level_id: list(records) for level_id, records in options.items()}

    async def list_options(
        self,
        level_id: str,
        parent_keys: frozenset | None = None,
    ) -> Sequence[OptionRecord]:
        if level_id not in self._options:
            raise NotFoundError(f"No options for level {level_id}")
        # Like the backend list endpoints, every option of the level is returned.
        return list(self._options[level_id])
