"""Login feature."""

from src.authgate.features.login.handlers import router

__all__ = ["router"]
