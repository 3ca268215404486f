"""Confirmation and submission state machine for deleting one record."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..i18n import _
from ..log import logger
from ..telemetry import log_event
from ..util.cancellation import CancellationEvent
from .errors import DeleteError, SourceError

if TYPE_CHECKING:
    from ..services.sources import DeleteSink


class DeletePhase(str, Enum):
    """Phases of a deletion request."""

    IDLE = "idle"
    CONFIRMING = "confirming"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class DeleteLifecycle:
    """Drive ``Idle -> Confirming -> Submitting -> Succeeded | Failed``.

    The record leaves the caller's list only after the sink confirmed the
    deletion, through ``on_deleted``. ``Succeeded`` is reported to
    ``on_transition`` and immediately followed by a reset to ``Idle``. A
    failure keeps the target and the error so the user can retry or cancel.
    """

    def __init__(
        self,
        sink: DeleteSink,
        *,
        key_of: Callable[[Any], Any],
        label_of: Callable[[Any], str] | None = None,
        on_deleted: Callable[[Any], None] | None = None,
        on_transition: Callable[[DeletePhase], None] | None = None,
        cancellation: CancellationEvent | None = None,
    ) -> None:
        self._sink = sink
        self._key_of = key_of
        self._label_of = label_of or (lambda record: str(key_of(record)))
        self._on_deleted = on_deleted
        self._on_transition = on_transition
        self._cancellation = cancellation or CancellationEvent()
        self.phase = DeletePhase.IDLE
        self.target: Any | None = None
        self.error: SourceError | None = None

    # state -----------------------------------------------------------
    @property
    def is_open(self) -> bool:
        """Return whether the confirmation surface should be shown."""
        return self.phase in (
            DeletePhase.CONFIRMING,
            DeletePhase.SUBMITTING,
            DeletePhase.FAILED,
        )

    @property
    def target_key(self) -> Any | None:
        return None if self.target is None else self._key_of(self.target)

    def prompt(self) -> str:
        """Return the confirmation message naming the target record."""
        if self.target is None:
            return ""
        return _('Delete "{label}"? This action cannot be undone.').format(
            label=self._label_of(self.target)
        )

    def _set_phase(self, phase: DeletePhase) -> None:
        self.phase = phase
        if self._on_transition is not None:
            self._on_transition(phase)

    def _reset(self) -> None:
        self.target = None
        self.error = None
        self._set_phase(DeletePhase.IDLE)

    # transitions -----------------------------------------------------
    def request_delete(self, record: Any) -> bool:
        """Open the confirmation for *record*; only allowed from ``Idle``."""
        if self.phase is not DeletePhase.IDLE:
            logger.debug("Ignoring delete request while %s", self.phase.value)
            return False
        self.target = record
        self.error = None
        self._set_phase(DeletePhase.CONFIRMING)
        return True

    def cancel(self) -> bool:
        """Close the confirmation from ``Confirming`` or ``Failed``."""
        if self.phase not in (DeletePhase.CONFIRMING, DeletePhase.FAILED):
            logger.debug("Cannot cancel delete while %s", self.phase.value)
            return False
        self._reset()
        return True

    async def confirm(self) -> bool:
        """Submit the deletion; returns ``True`` once the sink accepted it.

        A second call while a submission is in flight is a no-op. Results
        arriving after the owning view was torn down are ignored.
        """
        if self.phase not in (DeletePhase.CONFIRMING, DeletePhase.FAILED):
            logger.debug("Ignoring confirm while %s", self.phase.value)
            return False
        target = self.target
        key = self._key_of(target)
        self.error = None
        self._set_phase(DeletePhase.SUBMITTING)
        log_event("DELETE_SUBMITTED", {"key": key})
        started = time.monotonic()
        try:
            await self._sink.delete_record(key)
        except asyncio.CancelledError:
            if not self._cancellation.cancelled:
                self._set_phase(DeletePhase.CONFIRMING)
            raise
        except Exception as exc:
            if self._cancellation.cancelled:
                return False
            error = DeleteError.wrap(exc) if not isinstance(exc, SourceError) else exc
            self.error = error
            log_event(
                "DELETE_FAILED",
                {"key": key, "message": error.message, "status": error.status_code},
                start_time=started,
                level=logging.WARNING,
            )
            self._set_phase(DeletePhase.FAILED)
            return False
        if self._cancellation.cancelled:
            logger.debug("Delete of %s finished after teardown; ignoring", key)
            return False
        log_event("DELETE_SUCCEEDED", {"key": key}, start_time=started)
        if self._on_deleted is not None:
            self._on_deleted(target)
        self._set_phase(DeletePhase.SUCCEEDED)
        self._reset()
        return True
