"""Database connection, models and the profile store."""

from src.authgate.services.database.connection import create_supabase_client
from src.authgate.services.database.models import Profile
from src.authgate.services.database.profiles import ProfileStore

__all__ = [
    "create_supabase_client",
    "Profile",
    "ProfileStore",
]
