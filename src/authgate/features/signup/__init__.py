"""Signup feature."""

from src.authgate.features.signup.handlers import router

__all__ = ["router"]
