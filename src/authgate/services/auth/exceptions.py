"""Custom exceptions for the login, second-factor and callback flows."""

from enum import Enum


class ErrorKind(str, Enum):
    """Whether a failure aborts the current flow or is logged and skipped."""

    FATAL = "fatal"
    RECOVERABLE = "recoverable"


class AuthFlowError(Exception):
    """Base exception for all authentication flow errors."""

    kind: ErrorKind = ErrorKind.FATAL

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CredentialError(AuthFlowError):
    """Raised when the identity provider rejects credentials or a sign-up.

    The message is the provider's own text, shown to the user as-is.
    """

    pass


class ProfileStoreError(AuthFlowError):
    """Raised when a profile read or write fails (a missing row is not a failure)."""

    kind = ErrorKind.RECOVERABLE


class ChannelError(AuthFlowError):
    """Raised when the verification service returns non-2xx or is unreachable."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NoSessionError(AuthFlowError):
    """Raised when a bearer-authorized call is attempted without an access token."""

    def __init__(self, message: str = "No access token available. Please login again.") -> None:
        super().__init__(message)


class CallbackParseError(AuthFlowError):
    """Raised internally for a malformed callback fragment; never leaves the handler."""

    kind = ErrorKind.RECOVERABLE


class InvalidTransitionError(AuthFlowError):
    """Raised when a login flow operation is called from a state that does not allow it."""

    pass
