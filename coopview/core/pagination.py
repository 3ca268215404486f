"""Client-side pagination helpers."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

DEFAULT_WINDOW_SIZE = 5


@dataclass(frozen=True)
class Page:
    """One slice of a filtered record sequence.

    ``start_index`` and ``end_index`` are 1-based and inclusive, for
    captions such as "showing 11 to 20 of 23"; both are 0 for an empty page.
    """

    items: tuple[Any, ...]
    number: int
    total_pages: int
    page_size: int
    total_items: int

    @property
    def start_index(self) -> int:
        if not self.items:
            return 0
        return (self.number - 1) * self.page_size + 1

    @property
    def end_index(self) -> int:
        if not self.items:
            return 0
        return self.start_index + len(self.items) - 1

    @property
    def has_previous(self) -> bool:
        return self.number > 1

    @property
    def has_next(self) -> bool:
        return self.number < self.total_pages


def total_pages(total_items: int, page_size: int) -> int:
    """Return ``ceil(total_items / page_size)``; zero when there is nothing to show."""
    if page_size <= 0:
        page_size = 1
    return math.ceil(max(total_items, 0) / page_size)


def clamp_page(requested: int, pages: int) -> int:
    """Clamp *requested* into ``[1, pages]``; page 1 when there are no pages."""
    if pages <= 0:
        return 1
    return min(max(requested, 1), pages)


def paginate(records: Sequence[Any], page_size: int, requested_page: int) -> Page:
    """Return the clamped page of *records* for *requested_page*."""
    size = page_size if page_size > 0 else 1
    pages = total_pages(len(records), size)
    number = clamp_page(requested_page, pages)
    start = (number - 1) * size
    return Page(
        items=tuple(records[start : start + size]),
        number=number,
        total_pages=pages,
        page_size=size,
        total_items=len(records),
    )


def windowed_page_numbers(
    current_page: int,
    total_pages: int,
    window_size: int = DEFAULT_WINDOW_SIZE,
) -> list[int]:
    """Return up to *window_size* contiguous page numbers around *current_page*.

    With the default window of 5 the run starts at ``current_page - 2``,
    except that it starts at 1 while ``current_page <= 3`` and ends at
    ``total_pages`` once ``current_page >= total_pages - 2``.
    """
    if total_pages <= 0 or window_size <= 0:
        return []
    if total_pages <= window_size:
        return list(range(1, total_pages + 1))
    current = clamp_page(current_page, total_pages)
    half = window_size // 2
    if current <= half + 1:
        start = 1
    elif current >= total_pages - half:
        start = total_pages - window_size + 1
    else:
        start = current - half
    return list(range(start, start + window_size))
