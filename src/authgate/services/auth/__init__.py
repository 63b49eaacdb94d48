"""Authentication flow primitives: errors, identity models and results."""

from src.authgate.services.auth.exceptions import (
    AuthFlowError,
    CallbackParseError,
    ChannelError,
    CredentialError,
    ErrorKind,
    InvalidTransitionError,
    NoSessionError,
    ProfileStoreError,
)
from src.authgate.services.auth.models import AuthSession, IdentityRecord
from src.authgate.services.auth.outcome import Outcome

__all__ = [
    "AuthFlowError",
    "AuthSession",
    "CallbackParseError",
    "ChannelError",
    "CredentialError",
    "ErrorKind",
    "IdentityRecord",
    "InvalidTransitionError",
    "NoSessionError",
    "Outcome",
    "ProfileStoreError",
]
