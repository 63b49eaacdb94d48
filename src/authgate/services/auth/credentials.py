"""Email/password authentication and sign-up."""

import logging

from src.authgate.config import settings
from src.authgate.services.auth.exceptions import CredentialError
from src.authgate.services.auth.models import AuthSession, IdentityRecord
from src.authgate.services.auth.provider import IdentityProvider

logger = logging.getLogger(__name__)


class CredentialAuthenticator:
    """
    Exchanges credentials with the identity provider.

    Password policy is left to the provider. A failed login is never
    retried; the user has to submit again.

    Example:
        >>> authenticator = CredentialAuthenticator(IdentityProvider(client))
        >>> session = await authenticator.authenticate("a@x.com", "secret1")
    """

    def __init__(self, provider: IdentityProvider) -> None:
        self.provider = provider

    async def authenticate(self, email: str, password: str) -> AuthSession:
        """
        Sign in with email and password.

        Args:
            email: User email
            password: User password (sent as-is)

        Returns:
            Session whose identity reflects the provider's current state

        Raises:
            CredentialError: If a field is empty or the provider rejects the login
        """
        email = (email or "").strip()
        if not email or not password:
            raise CredentialError("Email and password are required")

        logger.info(f"Login attempt for {email}")
        session = await self.provider.sign_in_with_password(email, password)
        logger.info(f"Login succeeded for user {session.user.id}")
        return session

    async def register(
        self,
        email: str,
        password: str,
        full_name: str = "",
        phone_number: str = "",
        email_redirect_to: str | None = None,
    ) -> IdentityRecord | None:
        """
        Sign up a new user; name and phone go into the identity metadata.

        The phone is later picked up by the second-factor resolver and copied
        into the profile store on first login.

        Raises:
            CredentialError: If a field is empty or the provider rejects the sign-up
        """
        email = (email or "").strip()
        if not email or not password:
            raise CredentialError("Email and password are required")

        logger.info(f"Sign up attempt for {email}")
        return await self.provider.sign_up(
            email,
            password,
            metadata={"full_name": full_name.strip(), "phone_number": phone_number.strip()},
            email_redirect_to=email_redirect_to or settings.email_redirect_to,
        )
