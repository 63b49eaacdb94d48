"""Out-of-band code channel and email verification callback."""

from src.authgate.services.verification.callback import (
    CallbackResult,
    CallbackState,
    VerificationCallbackHandler,
    parse_callback_fragment,
)
from src.authgate.services.verification.channel import ChannelResponse, CodeChannel

__all__ = [
    "CallbackResult",
    "CallbackState",
    "ChannelResponse",
    "CodeChannel",
    "VerificationCallbackHandler",
    "parse_callback_fragment",
]
