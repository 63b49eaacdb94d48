"""Shared services module for external integrations."""

from src.authgate.services.analytics.posthog import PostHogService

__all__ = [
    "PostHogService",
]
