"""Tests for email verification callback handling."""

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest
from supabase import AuthApiError

from src.authgate.services.auth.exceptions import CallbackParseError, CredentialError
from src.authgate.services.database.profiles import ProfileStore
from src.authgate.services.verification.callback import (
    CallbackState,
    VerificationCallbackHandler,
    parse_callback_fragment,
)

CALLBACK_URL = (
    "http://localhost:3000/verify-email"
    "#access_token=at-123&refresh_token=rt-456&type=signup&expires_in=3600"
)
CONFIRMED = datetime(2024, 1, 2, tzinfo=UTC)
TEST_USER_ID = "123e4567-e89b-12d3-a456-426614174000"


@pytest.fixture
def handler(mock_provider, profile_store, mock_analytics) -> VerificationCallbackHandler:
    return VerificationCallbackHandler(
        mock_provider, profile_store, navigate=Mock(), analytics=mock_analytics
    )


class TestParseCallbackFragment:
    """Tests for fragment parsing."""

    def test_full_url(self):
        params = parse_callback_fragment(CALLBACK_URL)

        assert params["access_token"] == "at-123"
        assert params["refresh_token"] == "rt-456"
        assert params["type"] == "signup"

    def test_bare_fragment(self):
        assert parse_callback_fragment("#access_token=a&type=recovery") == {
            "access_token": "a",
            "type": "recovery",
        }

    def test_first_occurrence_wins(self):
        assert parse_callback_fragment("access_token=first&access_token=second") == {
            "access_token": "first"
        }

    @pytest.mark.parametrize(
        "callback", ["", "   ", "http://localhost:3000/verify-email", "http://x/verify#"]
    )
    def test_missing_fragment(self, callback: str):
        with pytest.raises(CallbackParseError):
            parse_callback_fragment(callback)


@pytest.mark.asyncio
class TestVerificationCallbackHandler:
    """Tests for VerificationCallbackHandler.handle."""

    async def test_no_access_token_awaits_email_click(self, handler, mock_provider):
        result = await handler.handle("http://localhost:3000/verify-email#type=signup")

        assert result.state == CallbackState.AWAITING_EMAIL_CLICK
        assert result.message == "Please check your email and click the verification link."
        assert mock_provider.mock_calls == []

    async def test_url_without_fragment_awaits_email_click(self, handler, mock_provider):
        result = await handler.handle("http://localhost:3000/verify-email")

        assert result.state == CallbackState.AWAITING_EMAIL_CLICK
        assert result.error is None
        assert mock_provider.mock_calls == []

    async def test_confirmed_email_is_verified_and_redirects(
        self, mock_provider, profile_store, make_session, make_identity
    ):
        navigate = Mock()
        handler = VerificationCallbackHandler(
            mock_provider, profile_store, navigate=navigate, redirect_delay_ms=10, analytics=Mock()
        )
        mock_provider.get_session.return_value = make_session()
        mock_provider.get_user.return_value = make_identity(email_confirmed_at=CONFIRMED)

        result = await handler.handle(CALLBACK_URL)

        assert result.state == CallbackState.VERIFIED
        assert result.message == "Email verified successfully! Redirecting to login..."
        assert result.redirect_to == "/login"
        assert result.redirect_after_ms == 10
        assert result.callback_type == "signup"
        mock_provider.set_session.assert_awaited_once_with("at-123", "rt-456")
        navigate.assert_not_called()

        await asyncio.sleep(0.1)

        navigate.assert_called_once_with("/login")
        assert profile_store.calls == []

    async def test_default_redirect_delay(self, handler, mock_provider, make_session, make_identity):
        mock_provider.get_session.return_value = make_session()
        mock_provider.get_user.return_value = make_identity(email_confirmed_at=CONFIRMED)

        result = await handler.handle(CALLBACK_URL)

        assert result.redirect_after_ms == 2000
        handler.navigate.assert_not_called()

    async def test_legacy_confirmed_at_counts(
        self, handler, mock_provider, make_session, make_identity
    ):
        mock_provider.get_session.return_value = make_session()
        mock_provider.get_user.return_value = make_identity(confirmed_at=CONFIRMED)

        result = await handler.handle(CALLBACK_URL)

        assert result.state == CallbackState.VERIFIED

    async def test_set_session_failure_is_not_fatal(
        self, handler, mock_provider, make_session, make_identity
    ):
        mock_provider.set_session.side_effect = CredentialError("Invalid JWT")
        mock_provider.get_session.return_value = make_session()
        mock_provider.get_user.return_value = make_identity(email_confirmed_at=CONFIRMED)

        result = await handler.handle(CALLBACK_URL)

        assert result.state == CallbackState.VERIFIED
        assert result.session_error == "Invalid JWT"

    async def test_no_session_is_unconfirmed(self, handler, mock_provider):
        mock_provider.set_session.side_effect = CredentialError("Invalid JWT")
        mock_provider.get_session.return_value = None

        result = await handler.handle(CALLBACK_URL)

        assert result.state == CallbackState.VERIFICATION_UNCONFIRMED
        assert result.message == "Unable to confirm verification status. Please try logging in."
        mock_provider.get_user.assert_not_called()

    async def test_unconfirmed_email_creates_profile(
        self, handler, mock_provider, profile_store, make_session, make_identity
    ):
        user = make_identity(user_metadata={"full_name": "Ada", "phone_number": "+14155550000"})
        mock_provider.get_session.return_value = make_session()
        mock_provider.get_user.return_value = user

        result = await handler.handle(CALLBACK_URL)

        assert result.state == CallbackState.PENDING_CONFIRMATION
        assert result.message == "Your email is pending verification. Please check your inbox."
        assert result.profile_created is True
        assert profile_store.rows[user.id] == {
            "id": user.id,
            "email": "a@x.com",
            "full_name": "Ada",
            "phone_number": "+14155550000",
            "isDeleted": False,
        }

    async def test_same_callback_twice_creates_one_profile(
        self, handler, mock_provider, profile_store, make_session, make_identity
    ):
        mock_provider.get_session.return_value = make_session()
        mock_provider.get_user.return_value = make_identity()

        first = await handler.handle(CALLBACK_URL)
        second = await handler.handle(CALLBACK_URL)

        assert first.profile_created is True
        assert second.profile_created is False
        assert second.profile_error is None
        assert profile_store.count("insert") == 1
        assert len(profile_store.rows) == 1

    async def test_lookup_error_still_inserts(
        self, handler, mock_provider, profile_store, make_session, make_identity
    ):
        profile_store.fail_on.add("select")
        mock_provider.get_session.return_value = make_session()
        mock_provider.get_user.return_value = make_identity()

        result = await handler.handle(CALLBACK_URL)

        assert result.state == CallbackState.PENDING_CONFIRMATION
        assert profile_store.count("insert") == 1

    async def test_insert_failure_keeps_pending_state(
        self, handler, mock_provider, profile_store, make_session, make_identity
    ):
        profile_store.fail_on.add("insert")
        mock_provider.get_session.return_value = make_session()
        mock_provider.get_user.return_value = make_identity()

        result = await handler.handle(CALLBACK_URL)

        assert result.state == CallbackState.PENDING_CONFIRMATION
        assert result.profile_created is False
        assert "permission denied" in result.profile_error

    async def test_session_read_error_is_callback_error(self, handler, mock_provider):
        mock_provider.get_session.side_effect = AuthApiError(
            "Invalid Refresh Token", 400, "refresh_token_not_found"
        )

        result = await handler.handle(CALLBACK_URL)

        assert result.state == CallbackState.CALLBACK_ERROR
        assert result.error == "Failed to verify email: Invalid Refresh Token"

    async def test_existing_row_without_soft_delete_flag(
        self, mock_provider, make_session, make_identity
    ):
        client = MagicMock()
        query = client.table.return_value
        query.select.return_value.eq.return_value.limit.return_value.execute = AsyncMock(
            return_value=MagicMock(data=[{"id": TEST_USER_ID, "email": "a@x.com", "isDeleted": None}])
        )
        handler = VerificationCallbackHandler(mock_provider, ProfileStore(client), analytics=Mock())
        mock_provider.get_session.return_value = make_session()
        mock_provider.get_user.return_value = make_identity()

        result = await handler.handle(CALLBACK_URL)

        assert result.state == CallbackState.PENDING_CONFIRMATION
        assert result.profile_created is False
        assert result.profile_error is None
        query.insert.assert_not_called()

    async def test_unreadable_row_counts_as_missing(
        self, mock_provider, make_session, make_identity
    ):
        client = MagicMock()
        query = client.table.return_value
        query.select.return_value.eq.return_value.limit.return_value.execute = AsyncMock(
            return_value=MagicMock(data=[{"email": "a@x.com"}])
        )
        query.insert.return_value.execute = AsyncMock(
            return_value=MagicMock(data=[{"id": TEST_USER_ID, "email": "a@x.com"}])
        )
        handler = VerificationCallbackHandler(mock_provider, ProfileStore(client), analytics=Mock())
        mock_provider.get_session.return_value = make_session()
        mock_provider.get_user.return_value = make_identity()

        result = await handler.handle(CALLBACK_URL)

        assert result.state == CallbackState.PENDING_CONFIRMATION
        assert result.profile_created is True
        query.insert.assert_called_once()
