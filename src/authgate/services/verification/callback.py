"""Email verification callback handling."""

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any
from urllib.parse import parse_qsl, urlsplit

from pydantic import BaseModel

from src.authgate.config import settings
from src.authgate.services.analytics.posthog import PostHogService
from src.authgate.services.auth.accessors import first_present
from src.authgate.services.auth.exceptions import (
    CallbackParseError,
    CredentialError,
    ProfileStoreError,
)
from src.authgate.services.auth.models import IdentityRecord
from src.authgate.services.auth.outcome import Outcome
from src.authgate.services.auth.provider import IdentityProvider
from src.authgate.services.database.models import Profile
from src.authgate.services.database.profiles import ProfileStore

logger = logging.getLogger(__name__)

Navigator = Callable[[str], Any]

MESSAGE_AWAITING_CLICK = "Please check your email and click the verification link."
MESSAGE_UNCONFIRMED = "Unable to confirm verification status. Please try logging in."
MESSAGE_VERIFIED = "Email verified successfully! Redirecting to login..."
MESSAGE_PENDING = "Your email is pending verification. Please check your inbox."


class CallbackState(str, Enum):
    """Terminal states of callback processing."""

    AWAITING_EMAIL_CLICK = "awaiting_email_click"
    VERIFICATION_UNCONFIRMED = "verification_unconfirmed"
    VERIFIED = "verified"
    PENDING_CONFIRMATION = "pending_confirmation"
    CALLBACK_ERROR = "callback_error"


class CallbackResult(BaseModel):
    """Rendered outcome of one callback; nothing here is retried."""

    state: CallbackState
    message: str | None = None
    error: str | None = None
    callback_type: str | None = None
    session_error: str | None = None
    profile_error: str | None = None
    profile_created: bool = False
    redirect_to: str | None = None
    redirect_after_ms: int | None = None


# Providers have exposed either field name; first non-null wins
CONFIRMATION_FIELDS = (
    ("email_confirmed_at", lambda user: user.email_confirmed_at),
    ("confirmed_at", lambda user: user.confirmed_at),
)


def is_email_confirmed(user: IdentityRecord) -> bool:
    return first_present(CONFIRMATION_FIELDS, user) is not None


def parse_callback_fragment(callback: str) -> dict[str, str]:
    """
    Parse provider parameters from a callback URL fragment.

    Accepts a full URL (``https://app/verify-email#access_token=...``), a bare
    fragment (``#access_token=...``) or the fragment body alone. The first
    occurrence of a repeated key wins.

    Raises:
        CallbackParseError: If there is no fragment to parse
    """
    if not isinstance(callback, str) or not callback.strip():
        raise CallbackParseError("Callback URL is empty")

    callback = callback.strip()
    if "#" in callback:
        fragment = urlsplit(callback).fragment if "://" in callback else callback.split("#", 1)[1]
    elif "://" in callback:
        raise CallbackParseError("Callback URL has no fragment")
    else:
        fragment = callback

    if not fragment:
        raise CallbackParseError("Callback URL has an empty fragment")

    params: dict[str, str] = {}
    for key, value in parse_qsl(fragment, keep_blank_values=True):
        params.setdefault(key, value)
    return params


class VerificationCallbackHandler:
    """
    Finalizes the session after an email link click and guarantees a profile row.

    Runs once per inbound callback URL. Every outcome is a terminal state;
    session-exchange and profile-insert failures are recorded on the result
    without changing it.

    Example:
        >>> handler = VerificationCallbackHandler(provider, store, navigate=router.push)
        >>> result = await handler.handle("https://app/verify-email#access_token=...")
        >>> result.state
        <CallbackState.VERIFIED: 'verified'>
    """

    def __init__(
        self,
        provider: IdentityProvider,
        store: ProfileStore,
        navigate: Navigator | None = None,
        login_path: str | None = None,
        redirect_delay_ms: int | None = None,
        analytics: PostHogService | None = None,
    ) -> None:
        """
        Initialize the handler.

        Args:
            provider: Identity provider for session exchange and user reads
            store: Profile store for the existence guarantee
            navigate: Called with ``login_path`` after the redirect delay
            login_path: Login entry point (default: settings.login_path)
            redirect_delay_ms: Delay before navigating (default: settings.verified_redirect_delay_ms)
            analytics: Event tracker (default: PostHogService())
        """
        self.provider = provider
        self.store = store
        self.navigate = navigate
        self.login_path = login_path or settings.login_path
        self.redirect_delay_ms = (
            settings.verified_redirect_delay_ms if redirect_delay_ms is None else redirect_delay_ms
        )
        self.analytics = analytics or PostHogService()

    async def handle(self, callback: str) -> CallbackResult:
        """
        Process a callback URL (or its fragment).

        Args:
            callback: Callback URL carrying ``access_token``, ``refresh_token``, ``type``

        Returns:
            CallbackResult in one of the CallbackState terminal states
        """
        try:
            try:
                params = parse_callback_fragment(callback)
            except CallbackParseError as e:
                logger.info(f"No verification parameters in callback: {e.message}")
                params = {}

            access_token = params.get("access_token")
            if not access_token:
                return CallbackResult(
                    state=CallbackState.AWAITING_EMAIL_CLICK, message=MESSAGE_AWAITING_CLICK
                )

            return await self._finalize(access_token, params)

        except Exception as e:
            logger.error(f"Verification error: {e}", exc_info=True)
            detail = getattr(e, "message", None) or str(e)
            return CallbackResult(
                state=CallbackState.CALLBACK_ERROR, error=f"Failed to verify email: {detail}"
            )

    async def _finalize(self, access_token: str, params: dict[str, str]) -> CallbackResult:
        callback_type = params.get("type") or None

        session_error = None
        try:
            await self.provider.set_session(access_token, params.get("refresh_token"))
        except CredentialError as e:
            # The provider may still hold a usable session; read it back below
            logger.warning(f"Error setting session from callback: {e.message}")
            session_error = e.message

        session = await self.provider.get_session(raise_errors=True)
        if session is None:
            return CallbackResult(
                state=CallbackState.VERIFICATION_UNCONFIRMED,
                message=MESSAGE_UNCONFIRMED,
                callback_type=callback_type,
                session_error=session_error,
            )

        user = await self.provider.get_user()
        if user is not None and is_email_confirmed(user):
            self.analytics.capture(distinct_id=user.id, event="email_verified")
            self._schedule_redirect()
            return CallbackResult(
                state=CallbackState.VERIFIED,
                message=MESSAGE_VERIFIED,
                callback_type=callback_type,
                session_error=session_error,
                redirect_to=self.login_path,
                redirect_after_ms=self.redirect_delay_ms,
            )

        result = CallbackResult(
            state=CallbackState.PENDING_CONFIRMATION,
            message=MESSAGE_PENDING,
            callback_type=callback_type,
            session_error=session_error,
        )
        if user is None:
            return result

        outcome, created = await self.ensure_profile(user)
        result.profile_error = outcome.error_message
        result.profile_created = created
        return result

    async def ensure_profile(self, user: IdentityRecord) -> tuple[Outcome[Profile], bool]:
        """
        Make sure a profile row exists for ``user``.

        A failed lookup is treated as "absent". Insert failures are returned as
        a recoverable outcome, never raised.

        Returns:
            Tuple of (outcome, created)
        """
        try:
            existing = await self.store.get_profile(user.id)
        except ProfileStoreError as e:
            logger.warning(f"Profile check failed for user {user.id}: {e.message}")
            existing = None

        if existing is not None:
            return Outcome.success(existing), False

        logger.info(f"Creating profile for verified user: {user.id}")
        try:
            created = await self.store.insert_profile(Profile.seed_row(user))
        except ProfileStoreError as e:
            logger.error(
                f"Error with profile check/creation for user {user.id}: {e.message}",
                extra={"error_type": "callback_profile_insert_failed", "user_id": user.id},
            )
            return Outcome.failure(e), False

        self.analytics.capture(distinct_id=user.id, event="profile_created_callback")
        return Outcome.success(created), True

    def _schedule_redirect(self) -> None:
        """One-shot deferred navigation to the login page; never cancelled."""
        if self.navigate is None:
            return
        loop = asyncio.get_running_loop()
        loop.call_later(self.redirect_delay_ms / 1000, self.navigate, self.login_path)
