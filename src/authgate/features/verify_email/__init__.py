"""Verify email feature."""

from src.authgate.features.verify_email.handlers import router

__all__ = ["router"]
