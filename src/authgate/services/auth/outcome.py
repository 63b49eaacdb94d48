"""Result type for best-effort steps (profile backfill and provisioning)."""

from dataclasses import dataclass
from typing import Generic, TypeVar

from src.authgate.services.auth.exceptions import AuthFlowError, ErrorKind

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """
    Value-or-error returned by steps whose failure may not block a flow.

    A failure carries the error's kind so callers decide mechanically whether
    to abort (fatal) or log and proceed (recoverable).

    Example:
        >>> outcome = await store.backfill_phone(user, "+14155550000")
        >>> if outcome.is_fatal:
        ...     raise outcome.error
    """

    value: T | None = None
    error: Exception | None = None
    kind: ErrorKind | None = None

    @classmethod
    def success(cls, value: T | None = None) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: Exception, kind: ErrorKind | None = None) -> "Outcome[T]":
        if kind is None:
            # Unknown exception types are never assumed safe to skip
            kind = error.kind if isinstance(error, AuthFlowError) else ErrorKind.FATAL
        return cls(error=error, kind=kind)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def is_fatal(self) -> bool:
        return self.kind == ErrorKind.FATAL

    @property
    def is_recoverable(self) -> bool:
        return self.kind == ErrorKind.RECOVERABLE

    @property
    def error_message(self) -> str | None:
        if self.error is None:
            return None
        return getattr(self.error, "message", None) or str(self.error)
