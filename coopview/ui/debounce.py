"""Timer scheduling and input debouncing for listing views."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Generic, Protocol, TypeVar

_T = TypeVar("_T")


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Run callbacks after a delay on the view's event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioScheduler:
    """Schedule callbacks on the running :mod:`asyncio` loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class Debouncer(Generic[_T]):
    """Deliver only the last value once input has been quiet for ``delay`` seconds.

    Every :meth:`push` cancels the pending timer and starts a new one, so a
    burst of keystrokes produces a single callback carrying the final value.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[_T], None],
        scheduler: Scheduler | None = None,
    ) -> None:
        self.delay = delay
        self._callback = callback
        self._scheduler = scheduler or AsyncioScheduler()
        self._handle: TimerHandle | None = None
        self._value: _T | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def push(self, value: _T) -> None:
        self.cancel()
        self._value = value
        self._handle = self._scheduler.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def flush(self) -> bool:
        """Deliver the pending value now; returns whether one was pending."""
        if self._handle is None:
            return False
        self.cancel()
        self._callback(self._value)  # type: ignore[arg-type]
        return True

    def _fire(self) -> None:
        self._handle = None
        self._callback(self._value)  # type: ignore[arg-type]
