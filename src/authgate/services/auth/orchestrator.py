"""Login state machine: credentials, second factor, authenticated session."""

import logging
from enum import Enum

from pydantic import BaseModel

from src.authgate.services.analytics.posthog import PostHogService
from src.authgate.services.auth.credentials import CredentialAuthenticator
from src.authgate.services.auth.exceptions import (
    ChannelError,
    CredentialError,
    InvalidTransitionError,
    NoSessionError,
    ProfileStoreError,
)
from src.authgate.services.auth.models import AuthSession, IdentityRecord
from src.authgate.services.auth.second_factor import (
    ChallengeState,
    SecondFactorContext,
    SecondFactorResolver,
)
from src.authgate.services.database.models import Profile
from src.authgate.services.database.profiles import ProfileStore
from src.authgate.services.verification.channel import CodeChannel

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Something went wrong. Please try again."


class LoginState(str, Enum):
    """States of one login attempt."""

    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    AWAITING_SECOND_FACTOR = "awaiting_second_factor"
    SENDING_CODE = "sending_code"
    CODE_SENT = "code_sent"
    VERIFYING = "verifying"
    VERIFY_FAILED = "verify_failed"
    AUTHENTICATED = "authenticated"


SECOND_FACTOR_STATES = frozenset(
    {LoginState.AWAITING_SECOND_FACTOR, LoginState.CODE_SENT, LoginState.VERIFY_FAILED}
)


class LoginErrorCode(str, Enum):
    """Machine-readable cause of the current ``error``."""

    INVALID_CREDENTIALS = "invalid_credentials"
    SESSION_EXPIRED = "session_expired"
    SEND_FAILED = "send_failed"
    CODE_REQUIRED = "code_required"
    VERIFY_FAILED = "verify_failed"
    PROFILE_LOAD_FAILED = "profile_load_failed"
    UNEXPECTED = "unexpected"


class LoginSnapshot(BaseModel):
    """Read-only view of a login attempt for the presentation layer."""

    state: LoginState
    error: str | None = None
    error_code: LoginErrorCode | None = None
    message: str | None = None
    phone: str | None = None
    challenge: ChallengeState | None = None
    user_id: str | None = None
    email: str | None = None


class DashboardView(BaseModel):
    """Identity and profile fields shown after login."""

    user_id: str
    email: str | None = None
    last_sign_in_at: str | None = None
    created_at: str | None = None
    profile: Profile | None = None
    profile_created: bool = False


class SessionOrchestrator:
    """
    Sequences credential exchange, second-factor resolution and the code loop.

    ``idle -> authenticating -> (awaiting_second_factor | authenticated)``, then
    ``sending_code -> code_sent -> verifying -> (authenticated | verify_failed)``.
    The second-factor phone is fixed when the attempt enters
    ``awaiting_second_factor`` and discarded on ``authenticated``.

    Flow failures are never raised: they land in ``error`` and the state moves
    as described per operation. Only calling an operation from a state that
    does not allow it raises ``InvalidTransitionError``.

    Example:
        >>> orchestrator = SessionOrchestrator(authenticator, resolver, channel, store)
        >>> snapshot = await orchestrator.submit_credentials("a@x.com", "secret1")
        >>> snapshot.state
        <LoginState.AUTHENTICATED: 'authenticated'>
    """

    def __init__(
        self,
        authenticator: CredentialAuthenticator,
        resolver: SecondFactorResolver,
        channel: CodeChannel,
        store: ProfileStore,
        analytics: PostHogService | None = None,
    ) -> None:
        self.authenticator = authenticator
        self.resolver = resolver
        self.channel = channel
        self.store = store
        self.analytics = analytics or PostHogService()

        self.state = LoginState.IDLE
        self.error: str | None = None
        self.error_code: LoginErrorCode | None = None
        self.message: str | None = None
        self.session: AuthSession | None = None
        self.second_factor: SecondFactorContext | None = None

    @property
    def user(self) -> IdentityRecord | None:
        return self.session.user if self.session else None

    def snapshot(self) -> LoginSnapshot:
        context = self.second_factor
        return LoginSnapshot(
            state=self.state,
            error=self.error,
            error_code=self.error_code,
            message=self.message,
            phone=context.phone if context else None,
            challenge=context.challenge if context else None,
            user_id=self.user.id if self.user else None,
            email=self.user.email if self.user else None,
        )

    async def submit_credentials(self, email: str, password: str) -> LoginSnapshot:
        """
        Start a login attempt.

        Raises:
            InvalidTransitionError: If the attempt is not idle
        """
        self._require(LoginState.IDLE)
        self._enter(LoginState.AUTHENTICATING)

        try:
            session = await self.authenticator.authenticate(email, password)
        except CredentialError as e:
            logger.info(f"Login failed: {e.message}")
            self.analytics.capture(distinct_id="anonymous", event="login_failed")
            return self._reset(e.message, LoginErrorCode.INVALID_CREDENTIALS)
        except Exception as e:
            logger.error(f"Login error: {e}", exc_info=True)
            return self._reset(GENERIC_FAILURE_MESSAGE, LoginErrorCode.UNEXPECTED)

        self.session = session
        try:
            requirement = await self.resolver.resolve(session)
        except Exception as e:
            logger.error(f"Second factor resolution failed for user {session.user.id}: {e}", exc_info=True)
            return self._reset(GENERIC_FAILURE_MESSAGE, LoginErrorCode.UNEXPECTED)

        if requirement.backfill is not None and not requirement.backfill.ok:
            # The phone is already known; a failed copy never blocks login
            logger.warning(
                f"Continuing login for user {session.user.id} without phone backfill: "
                f"{requirement.backfill.error_message}"
            )

        if requirement.required and requirement.phone:
            self.second_factor = SecondFactorContext(phone=requirement.phone)
            self.analytics.capture(
                distinct_id=session.user.id,
                event="second_factor_required",
                properties={"phone_source": requirement.source.value if requirement.source else None},
            )
            self._enter(LoginState.AWAITING_SECOND_FACTOR)
            return self.snapshot()

        self._authenticated(second_factor=False)
        return self.snapshot()

    async def request_code(self) -> LoginSnapshot:
        """
        Send (or resend) a one-time code to the fixed phone.

        Raises:
            InvalidTransitionError: Outside the second-factor states
        """
        self._require(*SECOND_FACTOR_STATES)
        previous = self.state
        context = self.second_factor
        self._enter(LoginState.SENDING_CODE)

        try:
            await self.channel.send_code(context.phone)
        except NoSessionError as e:
            return self._reset(e.message, LoginErrorCode.SESSION_EXPIRED)
        except ChannelError as e:
            logger.warning(f"Error sending verification code: {e.message}")
            self.state = previous
            self.error = f"Failed to send code: {e.message}"
            self.error_code = LoginErrorCode.SEND_FAILED
            return self.snapshot()
        except Exception as e:
            logger.error(f"Unexpected error sending verification code: {e}", exc_info=True)
            self.state = previous
            self.error = GENERIC_FAILURE_MESSAGE
            self.error_code = LoginErrorCode.UNEXPECTED
            return self.snapshot()

        context.challenge = ChallengeState.CODE_SENT
        self.message = "Verification code sent successfully!"
        self.analytics.capture(distinct_id=self.user.id, event="second_factor_code_sent")
        self._enter(LoginState.CODE_SENT, keep_message=True)
        return self.snapshot()

    async def submit_code(self, code: str) -> LoginSnapshot:
        """
        Verify a one-time code; failures keep the phone so the user can retry or resend.

        Raises:
            InvalidTransitionError: Outside the second-factor states
        """
        self._require(*SECOND_FACTOR_STATES)
        context = self.second_factor

        code = (code or "").strip()
        if not code:
            self.error = "Verification code is required"
            self.error_code = LoginErrorCode.CODE_REQUIRED
            return self.snapshot()

        context.challenge = ChallengeState.CODE_SUBMITTED
        self._enter(LoginState.VERIFYING)

        try:
            await self.channel.verify_code(context.phone, code)
        except NoSessionError as e:
            return self._reset(e.message, LoginErrorCode.SESSION_EXPIRED)
        except ChannelError as e:
            logger.info(f"Verification error: {e.message}")
            return self._verify_failed(
                f"Code verification failed: {e.message}", LoginErrorCode.VERIFY_FAILED
            )
        except Exception as e:
            logger.error(f"Unexpected verification error: {e}", exc_info=True)
            return self._verify_failed(GENERIC_FAILURE_MESSAGE, LoginErrorCode.UNEXPECTED)

        context.challenge = ChallengeState.VERIFIED
        self._authenticated(second_factor=True)
        return self.snapshot()

    async def load_profile(self) -> DashboardView:
        """
        Load the signed-in user's profile, creating it when missing.

        Raises:
            InvalidTransitionError: Unless authenticated
            ProfileStoreError: If the profile cannot be read or created
            NoSessionError: If the provider no longer returns a user
        """
        self._require(LoginState.AUTHENTICATED)

        user = await self.authenticator.provider.get_user()
        if user is None:
            raise NoSessionError()

        try:
            profile, created = await self.store.get_or_create(user)
        except ProfileStoreError as e:
            self.error = f"Failed to load profile: {e.message}"
            self.error_code = LoginErrorCode.PROFILE_LOAD_FAILED
            raise

        if created:
            self.analytics.capture(distinct_id=user.id, event="profile_created_jit")
        return DashboardView(
            user_id=user.id,
            email=user.email,
            last_sign_in_at=user.last_sign_in_at.isoformat() if user.last_sign_in_at else None,
            created_at=user.created_at.isoformat() if user.created_at else None,
            profile=profile,
            profile_created=created,
        )

    async def sign_out(self) -> LoginSnapshot:
        """
        Invalidate the provider session and return the attempt to idle.

        Raises:
            CredentialError: If the provider rejects the sign-out
        """
        await self.authenticator.provider.sign_out()
        user_id = self.user.id if self.user else None
        logger.info(f"User {user_id} signed out")
        self.session = None
        return self._reset(None)

    async def release(self) -> None:
        """Drop the in-memory session and close the code channel (flow discarded or expired)."""
        self.session = None
        self.second_factor = None
        await self.authenticator.provider.release()
        await self.channel.close()

    def _require(self, *allowed: LoginState) -> None:
        if self.state not in allowed:
            raise InvalidTransitionError(
                f"Operation not allowed in state '{self.state.value}'"
            )

    def _enter(self, state: LoginState, keep_message: bool = False) -> None:
        logger.debug(f"Login state {self.state.value} -> {state.value}")
        self.state = state
        self.error = None
        self.error_code = None
        if not keep_message:
            self.message = None

    def _reset(self, error: str | None, code: LoginErrorCode | None = None) -> LoginSnapshot:
        self._enter(LoginState.IDLE)
        self.error = error
        self.error_code = code
        self.second_factor = None
        if error is not None:
            self.session = None
        return self.snapshot()

    def _verify_failed(self, error: str, code: LoginErrorCode) -> LoginSnapshot:
        self.second_factor.challenge = ChallengeState.FAILED
        self.analytics.capture(distinct_id=self.user.id, event="second_factor_failed")
        self._enter(LoginState.VERIFY_FAILED)
        self.error = error
        self.error_code = code
        return self.snapshot()

    def _authenticated(self, second_factor: bool) -> None:
        self.second_factor = None
        self._enter(LoginState.AUTHENTICATED)
        self.analytics.capture(
            distinct_id=self.user.id,
            event="second_factor_verified" if second_factor else "login_succeeded",
            properties={"second_factor": second_factor},
        )
        logger.info(f"User {self.user.id} authenticated", extra={"second_factor": second_factor})
