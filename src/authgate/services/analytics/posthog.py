"""PostHog analytics service for auth event tracking."""

import logging

import posthog

from src.authgate.config import settings

logger = logging.getLogger(__name__)


class PostHogService:
    """Service for tracking authentication events via PostHog."""

    def __init__(self) -> None:
        """Initialize PostHog service."""
        if settings.posthog_api_key:
            posthog.api_key = settings.posthog_api_key
            posthog.host = settings.posthog_host

    def capture(self, distinct_id: str, event: str, properties: dict | None = None) -> None:
        """
        Track an event.

        Tracking failures are logged and never interrupt an auth flow.

        Args:
            distinct_id: Unique identifier for the user ("anonymous" before login)
            event: Event name (e.g., "login_succeeded", "second_factor_verified")
            properties: Optional event properties (never tokens, passwords or codes)

        Example:
            >>> service = PostHogService()
            >>> service.capture("user-123", "login_succeeded", {"second_factor": False})
        """
        if not settings.posthog_api_key:
            return

        try:
            posthog.capture(distinct_id=distinct_id, event=event, properties=properties or {})
        except Exception as e:
            logger.warning(f"Failed to capture analytics event {event}: {e}")
