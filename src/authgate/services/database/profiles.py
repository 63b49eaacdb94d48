"""Profile store adapter over the Supabase ``profiles`` table."""

import logging
from typing import Any

import httpx
from pydantic import ValidationError
from supabase import AsyncClient, PostgrestAPIError

from src.authgate.config import settings
from src.authgate.services.auth.exceptions import ErrorKind, ProfileStoreError
from src.authgate.services.auth.models import IdentityRecord
from src.authgate.services.auth.outcome import Outcome
from src.authgate.services.database.models import Profile

logger = logging.getLogger(__name__)

_STORE_ERRORS = (PostgrestAPIError, httpx.HTTPError)


def _describe(error: Exception) -> str:
    return getattr(error, "message", None) or str(error)


def _parse_row(row: dict[str, Any], action: str) -> Profile:
    try:
        return Profile.model_validate(row)
    except ValidationError as e:
        logger.warning(f"Unreadable profile row for user {row.get('id')}: {e}")
        raise ProfileStoreError(f"Failed to {action} profile: invalid row") from e


class ProfileStore:
    """
    Reads and writes the single profile row of an identity.

    Every query is keyed by the primary key ``id`` (= identity id). A missing
    row is a normal zero result; only transport or database failures raise
    ``ProfileStoreError``.

    Example:
        >>> store = ProfileStore(client)
        >>> profile = await store.get_profile(user.id)
        >>> if profile is None:
        ...     profile = await store.insert_profile(Profile.seed_row(user))
    """

    def __init__(self, client: AsyncClient, table: str | None = None) -> None:
        """
        Initialize the store.

        Args:
            client: Supabase client carrying the signed-in session
            table: Table name (default: settings.profiles_table)
        """
        self.client = client
        self.table = table or settings.profiles_table

    async def get_profile(self, user_id: str, columns: str = "*") -> Profile | None:
        """
        Point lookup by identity id (zero-or-one row).

        Args:
            user_id: Identity id
            columns: Columns to select (default: "*")

        Returns:
            Profile or None if no row exists

        Raises:
            ProfileStoreError: If the read fails
        """
        try:
            response = (
                await self.client.table(self.table)
                .select(columns)
                .eq("id", str(user_id))
                .limit(1)
                .execute()
            )
        except _STORE_ERRORS as e:
            logger.warning(f"Profile lookup failed for user {user_id}: {_describe(e)}")
            raise ProfileStoreError(f"Failed to read profile: {_describe(e)}") from e

        if not response.data:
            return None
        return _parse_row(response.data[0], "read")

    async def insert_profile(self, row: dict[str, Any]) -> Profile | None:
        """
        Insert a new profile row (fails on a duplicate id).

        Raises:
            ProfileStoreError: If the insert fails
        """
        try:
            response = await self.client.table(self.table).insert(row).execute()
        except _STORE_ERRORS as e:
            logger.warning(f"Profile insert failed for user {row.get('id')}: {_describe(e)}")
            raise ProfileStoreError(f"Failed to create profile: {_describe(e)}") from e

        return _parse_row(response.data[0], "create") if response.data else None

    async def upsert_profile(self, row: dict[str, Any]) -> Profile | None:
        """
        Insert or overwrite the profile row, conflict target ``id``.

        Raises:
            ProfileStoreError: If the upsert fails
        """
        try:
            response = (
                await self.client.table(self.table).upsert(row, on_conflict="id").execute()
            )
        except _STORE_ERRORS as e:
            logger.warning(f"Profile upsert failed for user {row.get('id')}: {_describe(e)}")
            raise ProfileStoreError(f"Failed to update profile: {_describe(e)}") from e

        return _parse_row(response.data[0], "update") if response.data else None

    async def backfill_phone(self, user: IdentityRecord, phone: str) -> Outcome[Profile]:
        """
        Best-effort copy of a metadata phone number into the profile row.

        Never raises for store failures; the caller already holds the phone.

        Args:
            user: Identity whose profile is updated
            phone: Phone number found in the identity metadata

        Returns:
            Outcome with the stored profile, or the recoverable store error
        """
        try:
            profile = await self.upsert_profile(
                {"id": user.id, "phone_number": phone, "email": user.email}
            )
        except ProfileStoreError as e:
            logger.error(
                f"Error updating profile with phone number for user {user.id}: {e.message}",
                extra={"error_type": "phone_backfill_failed", "user_id": user.id},
            )
            return Outcome.failure(e)
        except Exception as e:
            logger.error(
                f"Exception updating profile for user {user.id}: {e}",
                exc_info=True,
                extra={"error_type": "phone_backfill_failed", "user_id": user.id},
            )
            return Outcome.failure(e, ErrorKind.RECOVERABLE)

        logger.info(f"Updated profile with phone number from metadata for user {user.id}")
        return Outcome.success(profile)

    async def get_or_create(self, user: IdentityRecord) -> tuple[Profile, bool]:
        """
        Get the profile, creating it from the identity if missing (JIT provisioning).

        Args:
            user: Identity to look up or seed from

        Returns:
            Tuple of (profile, created)

        Raises:
            ProfileStoreError: If the read or insert fails
        """
        profile = await self.get_profile(user.id)
        if profile is not None:
            return profile, False

        logger.info(f"Profile not found for user {user.id}, creating one")
        created = await self.insert_profile(Profile.seed_row(user, include_soft_delete=False))
        if created is None:
            raise ProfileStoreError("Failed to create profile: no row returned")
        return created, True
