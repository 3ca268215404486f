"""Error taxonomy for listing views and their data-access collaborators."""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass

from ..i18n import _

NOT_FOUND_STATUS = 404


class CoopViewError(Exception):
    """Base class for errors raised by coopview."""


class LevelGraphError(CoopViewError, ValueError):
    """Raised when filter levels or a listing schema are malformed."""


class SourceError(CoopViewError):
    """Failure reported by a record, option or delete collaborator.

    ``status_code`` mirrors the HTTP status of the backend response when one
    exists. Statuses listed in ``non_retryable`` mark the failure as final, so
    views do not offer a retry for a resource that is simply absent.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        *,
        non_retryable: Collection[int] = (NOT_FOUND_STATUS,),
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self._non_retryable = frozenset(non_retryable)

    @property
    def retryable(self) -> bool:
        return self.status_code not in self._non_retryable

    @classmethod
    def wrap(cls, exc: BaseException) -> SourceError:
        """Return *exc* as a :class:`SourceError`, preserving existing ones."""
        if isinstance(exc, SourceError):
            return exc
        message = str(exc).strip() or type(exc).__name__
        status = getattr(exc, "status_code", None)
        if not isinstance(status, int):
            status = None
        wrapped = cls(message, status)
        wrapped.__cause__ = exc
        return wrapped

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, status_code={self.status_code!r})"


class NotFoundError(SourceError):
    """Resource is missing on the backend; never worth retrying."""

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(message, NOT_FOUND_STATUS)


class DeleteError(SourceError):
    """The delete sink rejected a deletion."""


@dataclass(frozen=True)
class LoadFailure:
    """View-state projection of a failed record list load."""

    message: str
    status_code: int | None
    retryable: bool
    retry_count: int
    max_retries: int

    @property
    def can_retry(self) -> bool:
        return self.retryable and self.retry_count < self.max_retries

    @property
    def retry_label(self) -> str:
        """Caption for the retry affordance."""
        if self.retry_count >= self.max_retries:
            return _("Too many attempts")
        return _("Retry")

    @classmethod
    def from_error(
        cls,
        error: SourceError,
        *,
        retry_count: int,
        max_retries: int,
        non_retryable: Collection[int] | None = None,
    ) -> LoadFailure:
        retryable = error.retryable
        if non_retryable is not None:
            retryable = error.status_code not in set(non_retryable)
        return cls(
            message=error.message or _("Failed to fetch data"),
            status_code=error.status_code,
            retryable=retryable,
            retry_count=retry_count,
            max_retries=max_retries,
        )
