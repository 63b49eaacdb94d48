"""Identity provider adapter over Supabase Auth."""

import logging
from typing import Any

import httpx
from supabase import AsyncClient, AuthError

from src.authgate.services.auth.exceptions import CredentialError
from src.authgate.services.auth.models import AuthSession, IdentityRecord

logger = logging.getLogger(__name__)


def _provider_message(error: AuthError) -> str:
    return getattr(error, "message", None) or str(error)


class IdentityProvider:
    """
    Thin async wrapper around ``client.auth``.

    Converts Supabase responses into ``AuthSession`` / ``IdentityRecord`` and
    Supabase ``AuthError`` into ``CredentialError`` for the credential calls.
    Session reads treat a provider error the same as "no session".

    Attributes:
        client: Supabase async client holding this flow's session
    """

    def __init__(self, client: AsyncClient) -> None:
        self.client = client

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        """
        Exchange email and password for a session.

        Raises:
            CredentialError: With the provider's message verbatim
        """
        try:
            response = await self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except AuthError as e:
            raise CredentialError(_provider_message(e)) from e

        if response.session is None or response.user is None:
            raise CredentialError("Sign in did not return a session")
        return AuthSession.from_provider(response.session, response.user)

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any],
        email_redirect_to: str,
    ) -> IdentityRecord | None:
        """
        Register a new user; the provider emails a verification link.

        Returns:
            The created identity, or None if the provider withholds it

        Raises:
            CredentialError: With the provider's message verbatim
        """
        try:
            response = await self.client.auth.sign_up(
                {
                    "email": email,
                    "password": password,
                    "options": {"data": metadata, "email_redirect_to": email_redirect_to},
                }
            )
        except AuthError as e:
            raise CredentialError(_provider_message(e)) from e

        return IdentityRecord.from_provider(response.user) if response.user else None

    async def set_session(self, access_token: str, refresh_token: str | None) -> AuthSession:
        """
        Establish a session from callback tokens.

        Raises:
            CredentialError: If the provider rejects the tokens
        """
        try:
            response = await self.client.auth.set_session(access_token, refresh_token or "")
        except AuthError as e:
            raise CredentialError(_provider_message(e)) from e

        if response.session is None:
            raise CredentialError("Provider did not establish a session")
        return AuthSession.from_provider(response.session, response.user)

    async def get_session(self, raise_errors: bool = False) -> AuthSession | None:
        """
        Read the current session; expired or missing sessions read as None.

        Args:
            raise_errors: Propagate provider errors instead of reading them as None
        """
        try:
            session = await self.client.auth.get_session()
        except AuthError as e:
            if raise_errors:
                raise
            logger.warning(f"Session read failed: {_provider_message(e)}")
            return None

        if session is None or not getattr(session, "access_token", None):
            return None
        return AuthSession.from_provider(session)

    async def get_access_token(self) -> str | None:
        session = await self.get_session()
        return session.access_token if session else None

    async def get_user(self) -> IdentityRecord | None:
        """Read the current user from the provider (not from the cached session)."""
        try:
            response = await self.client.auth.get_user()
        except AuthError as e:
            logger.warning(f"User read failed: {_provider_message(e)}")
            return None

        if response is None or response.user is None:
            return None
        return IdentityRecord.from_provider(response.user)

    async def sign_out(self) -> None:
        """
        Invalidate the current session.

        Raises:
            CredentialError: If the provider rejects the sign-out
        """
        try:
            await self.client.auth.sign_out()
        except AuthError as e:
            raise CredentialError(_provider_message(e)) from e

    async def release(self) -> None:
        """
        End this client's session locally when its login flow goes away.

        Revokes the session's refresh token with the provider (``scope=local``)
        and clears the in-memory session. A provider or transport failure is
        only logged: the client is dropped together with its flow.
        """
        try:
            await self.client.auth.sign_out({"scope": "local"})
        except (AuthError, httpx.HTTPError) as e:
            logger.warning(f"Could not revoke session on release: {e}")
