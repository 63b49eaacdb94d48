"""Rate limiting for the login, sign-up and code dispatch endpoints."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from src.authgate.config import settings

# Per-process counters keyed by client address
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # No global limits, we'll apply per-endpoint
    storage_uri="memory://",  # In-memory storage for single-instance deployment
    enabled=settings.rate_limit_enabled,
)


# Rate limit tier definitions
class RateLimitTiers:
    """
    Rate limit tiers for different endpoint categories.

    All limits are per client address: most endpoints here are reached
    before the user has a session.
    """

    # Reads of flow state
    DEFAULT = ["100 per minute", "1000 per hour"]

    # Password submissions and sign-ups (credential stuffing)
    CREDENTIALS = ["10 per minute", "50 per hour"]

    # One-time code dispatch (each call sends an SMS)
    CODE_DISPATCH = ["3 per minute", "10 per hour"]

    # Code submissions and callbacks
    PUBLIC = ["20 per minute", "100 per hour"]


# Decorated endpoints must take a `request: Request` parameter
default_rate_limit = limiter.limit(";".join(RateLimitTiers.DEFAULT))
credentials_rate_limit = limiter.limit(";".join(RateLimitTiers.CREDENTIALS))
code_dispatch_rate_limit = limiter.limit(";".join(RateLimitTiers.CODE_DISPATCH))
public_rate_limit = limiter.limit(";".join(RateLimitTiers.PUBLIC))
