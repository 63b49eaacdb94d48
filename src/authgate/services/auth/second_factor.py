"""Second-factor requirement and phone resolution."""

import logging
from dataclasses import dataclass
from enum import Enum

from src.authgate.services.auth.accessors import first_present
from src.authgate.services.auth.exceptions import ProfileStoreError
from src.authgate.services.auth.models import AuthSession, IdentityRecord
from src.authgate.services.auth.outcome import Outcome
from src.authgate.services.database.models import Profile
from src.authgate.services.database.profiles import ProfileStore

logger = logging.getLogger(__name__)


class PhoneSource(str, Enum):
    """Where the second-factor phone number was found."""

    PROFILE = "profile"
    METADATA = "metadata"


class ChallengeState(str, Enum):
    """One-time code challenge lifecycle."""

    NOT_STARTED = "not_started"
    CODE_SENT = "code_sent"
    CODE_SUBMITTED = "code_submitted"
    VERIFIED = "verified"
    FAILED = "failed"


def profile_phone(profile: Profile | None, user: IdentityRecord) -> str | None:
    return profile.phone if profile is not None else None


def metadata_phone(profile: Profile | None, user: IdentityRecord) -> str | None:
    return user.metadata_value("phone_number")


# Highest priority first
PHONE_SOURCES = (
    (PhoneSource.PROFILE, profile_phone),
    (PhoneSource.METADATA, metadata_phone),
)


def select_phone(
    profile: Profile | None, user: IdentityRecord
) -> tuple[PhoneSource, str] | None:
    """Pick the second-factor phone from already-fetched records."""
    return first_present(PHONE_SOURCES, profile, user)


@dataclass(frozen=True)
class SecondFactorRequirement:
    """Result of resolving whether a login needs a one-time code."""

    required: bool
    phone: str | None = None
    source: PhoneSource | None = None
    backfill: Outcome[Profile] | None = None


@dataclass
class SecondFactorContext:
    """Phone and challenge state of one login attempt; never persisted."""

    phone: str
    required: bool = True
    challenge: ChallengeState = ChallengeState.NOT_STARTED


class SecondFactorResolver:
    """
    Decides whether a second factor is required and which phone to use.

    Order (first match wins):
    1. Phone on the profile row
    2. ``phone_number`` in the identity metadata, copied into the profile
       row on a best-effort basis so later logins find it there
    3. No phone: no second factor
    """

    def __init__(self, store: ProfileStore) -> None:
        self.store = store

    async def resolve(self, session: AuthSession) -> SecondFactorRequirement:
        """
        Resolve the second-factor requirement for a fresh session.

        Args:
            session: Session returned by the credential exchange

        Returns:
            SecondFactorRequirement (``backfill`` is set when a metadata phone
            was written back to the profile store)
        """
        user = session.user

        try:
            profile = await self.store.get_profile(user.id, columns="id,phone_number")
        except ProfileStoreError as e:
            # Fall back to metadata, the same as a missing row
            logger.warning(f"Profile fetch failed for user {user.id}, checking metadata: {e.message}")
            profile = None

        selected = select_phone(profile, user)
        if selected is None:
            logger.info(f"No phone number found for user {user.id}, skipping second factor")
            return SecondFactorRequirement(required=False)

        source, phone = selected
        logger.info(
            f"Second factor required for user {user.id}",
            extra={"user_id": user.id, "phone_source": source.value},
        )

        if source is PhoneSource.METADATA:
            backfill = await self.store.backfill_phone(user, phone)
            return SecondFactorRequirement(
                required=True, phone=phone, source=source, backfill=backfill
            )

        return SecondFactorRequirement(required=True, phone=phone, source=source)
