"""Cancellation primitives tying asynchronous work to a view lifetime."""

from __future__ import annotations

import threading
from collections.abc import Callable

from ..log import logger

__all__ = ["CancellationEvent"]


class CancellationEvent:
    """One-shot cancellation flag with teardown callbacks.

    Callbacks registered through :meth:`add_callback` run exactly once, in
    registration order, when :meth:`set` is first called. Registering after
    cancellation runs the callback immediately.
    """

    __slots__ = ("_event", "_callbacks")

    def __init__(self) -> None:
        self._event = threading.Event()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        """Return ``True`` when cancellation has been requested."""

        return self._event.is_set()

    def is_set(self) -> bool:
        """Expose :meth:`threading.Event.is_set`."""

        return self._event.is_set()

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run *callback* when cancellation is signalled."""

        if self._event.is_set():
            callback()
            return
        self._callbacks.append(callback)

    def set(self) -> None:
        """Signal cancellation and fire pending callbacks."""

        if self._event.is_set():
            return
        self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback %r failed", callback)
