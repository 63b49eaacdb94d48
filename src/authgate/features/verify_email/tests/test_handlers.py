"""Tests for the email verification API handler."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from src.authgate.services.auth.dependencies import get_supabase_client

TEST_USER_ID = "123e4567-e89b-12d3-a456-426614174000"
VERIFY_URL = "/api/v1/verify-email"
CALLBACK_URL = (
    "http://localhost:3000/verify-email#access_token=at-123&refresh_token=rt-456&type=signup"
)


def _user(**overrides) -> SimpleNamespace:
    data = {
        "id": TEST_USER_ID,
        "email": "a@x.com",
        "email_confirmed_at": None,
        "confirmed_at": None,
        "user_metadata": {},
        "last_sign_in_at": None,
        "created_at": "2024-01-01T00:00:00Z",
    }
    data.update(overrides)
    return SimpleNamespace(**data)


@pytest.fixture
def mock_client() -> MagicMock:
    user = _user(email_confirmed_at="2024-01-02T00:00:00Z")
    session = SimpleNamespace(access_token="at-123", refresh_token="rt-456", user=user)
    client = MagicMock()
    client.auth.set_session = AsyncMock(return_value=SimpleNamespace(session=session, user=user))
    client.auth.get_session = AsyncMock(return_value=session)
    client.auth.get_user = AsyncMock(return_value=SimpleNamespace(user=user))
    return client


@pytest.fixture
def client_with_supabase(client: TestClient, mock_client: MagicMock, disable_rate_limits):
    from src.authgate.main import app

    async def override_get_supabase_client():
        return mock_client

    app.dependency_overrides[get_supabase_client] = override_get_supabase_client
    yield client
    app.dependency_overrides = {}


def test_verified_callback(client_with_supabase: TestClient, mock_client: MagicMock) -> None:
    """Test POST /verify-email reports a verified email and where to redirect."""
    response = client_with_supabase.post(VERIFY_URL, json={"callback_url": CALLBACK_URL})

    assert response.status_code == 200
    data = response.json()
    assert data["state"] == "verified"
    assert data["message"] == "Email verified successfully! Redirecting to login..."
    assert data["redirect_to"] == "/login"
    assert data["redirect_after_ms"] == 2000
    assert data["callback_type"] == "signup"
    mock_client.auth.set_session.assert_awaited_once_with("at-123", "rt-456")
    mock_client.table.assert_not_called()


def test_callback_without_token(client_with_supabase: TestClient, mock_client: MagicMock) -> None:
    """Test POST /verify-email without tokens asks the user to click the link."""
    response = client_with_supabase.post(
        VERIFY_URL, json={"callback_url": "http://localhost:3000/verify-email"}
    )

    assert response.status_code == 200
    assert response.json()["state"] == "awaiting_email_click"
    mock_client.auth.set_session.assert_not_called()


def test_unconfirmed_callback_creates_profile(
    client_with_supabase: TestClient, mock_client: MagicMock
) -> None:
    """Test POST /verify-email provisions the profile for an unconfirmed email."""
    mock_client.auth.get_user.return_value = SimpleNamespace(user=_user())
    query = mock_client.table.return_value
    query.select.return_value.eq.return_value.limit.return_value.execute = AsyncMock(
        return_value=SimpleNamespace(data=[])
    )
    query.insert.return_value.execute = AsyncMock(
        return_value=SimpleNamespace(data=[{"id": TEST_USER_ID, "email": "a@x.com"}])
    )

    response = client_with_supabase.post(VERIFY_URL, json={"callback_url": CALLBACK_URL})

    assert response.status_code == 200
    data = response.json()
    assert data["state"] == "pending_confirmation"
    assert data["profile_created"] is True
    mock_client.table.assert_called_with("profiles")
    query.insert.assert_called_once_with(
        {
            "id": TEST_USER_ID,
            "email": "a@x.com",
            "full_name": "",
            "phone_number": "",
            "isDeleted": False,
        }
    )
