"""Data models for identity provider sessions."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class IdentityRecord(BaseModel):
    """
    User record owned by the identity provider (read-only to this service).

    Built from Supabase ``User`` objects via ``from_provider``; unknown provider
    attributes are ignored.

    Attributes:
        id: Stable user identifier
        email: User email
        email_confirmed_at: When the email was confirmed (None if pending)
        confirmed_at: Legacy name of the confirmation timestamp
        user_metadata: Free-form metadata set at sign-up (full_name, phone_number)
        last_sign_in_at: Last successful sign-in
        created_at: Account creation time

    Example:
        >>> user = IdentityRecord(
        ...     id="123e4567-e89b-12d3-a456-426614174000",
        ...     email="user@example.com",
        ...     user_metadata={"phone_number": "+14155550000"},
        ... )
    """

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: str
    email: str | None = None
    email_confirmed_at: datetime | None = None
    confirmed_at: datetime | None = None
    user_metadata: dict[str, Any] = {}
    last_sign_in_at: datetime | None = None
    created_at: datetime | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return str(value) if value is not None else value

    @field_validator("user_metadata", mode="before")
    @classmethod
    def _default_metadata(cls, value: Any) -> Any:
        return value or {}

    @classmethod
    def from_provider(cls, user: Any) -> "IdentityRecord":
        """Convert a provider user object (or mapping) into an IdentityRecord."""
        return cls.model_validate(user, from_attributes=True)

    def metadata_value(self, key: str) -> str | None:
        """Return a non-empty string metadata value, or None."""
        value = self.user_metadata.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None


class AuthSession(BaseModel):
    """
    Bearer-token pair plus the identity it authorizes.

    Tokens are opaque: they are forwarded to the provider and the
    verification service but never decoded here.
    """

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    access_token: str
    refresh_token: str | None = None
    user: IdentityRecord

    @classmethod
    def from_provider(cls, session: Any, user: Any = None) -> "AuthSession":
        """
        Convert a provider session into an AuthSession.

        Args:
            session: Provider session object carrying tokens
            user: Provider user to attach when the session omits it
        """
        provider_user = user if user is not None else getattr(session, "user", None)
        if provider_user is None:
            raise ValueError("Provider session has no associated user")
        return cls(
            access_token=session.access_token,
            refresh_token=getattr(session, "refresh_token", None),
            user=IdentityRecord.from_provider(provider_user),
        )
