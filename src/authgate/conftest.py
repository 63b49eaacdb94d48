"""Pytest configuration and shared fixtures."""

import json
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock, Mock

import httpx
import pytest
from fastapi.testclient import TestClient

from src.authgate.main import app
from src.authgate.services.auth.exceptions import ProfileStoreError
from src.authgate.services.auth.models import AuthSession, IdentityRecord
from src.authgate.services.auth.provider import IdentityProvider
from src.authgate.services.database.models import Profile
from src.authgate.services.database.profiles import ProfileStore
from src.authgate.services.rate_limiter import limiter

TEST_USER_ID = "123e4567-e89b-12d3-a456-426614174000"
VERIFY_BASE_URL = "https://verify.test/functions/v1"


class InMemoryProfileStore(ProfileStore):
    """ProfileStore backed by a dict; keeps the real backfill/JIT logic."""

    def __init__(self, rows: dict[str, dict[str, Any]] | None = None) -> None:
        super().__init__(client=MagicMock(), table="profiles")
        self.rows: dict[str, dict[str, Any]] = {k: dict(v) for k, v in (rows or {}).items()}
        self.calls: list[tuple[str, Any]] = []
        self.fail_on: set[str] = set()

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    async def get_profile(self, user_id: str, columns: str = "*") -> Profile | None:
        self.calls.append(("select", user_id))
        if "select" in self.fail_on:
            raise ProfileStoreError("Failed to read profile: connection reset")
        row = self.rows.get(user_id)
        return Profile.model_validate(row) if row else None

    async def insert_profile(self, row: dict[str, Any]) -> Profile | None:
        self.calls.append(("insert", dict(row)))
        if "insert" in self.fail_on:
            raise ProfileStoreError("Failed to create profile: permission denied")
        if row["id"] in self.rows:
            raise ProfileStoreError("Failed to create profile: duplicate key value")
        self.rows[row["id"]] = dict(row)
        return Profile.model_validate(row)

    async def upsert_profile(self, row: dict[str, Any]) -> Profile | None:
        self.calls.append(("upsert", dict(row)))
        if "upsert" in self.fail_on:
            raise ProfileStoreError("Failed to update profile: permission denied")
        merged = {**self.rows.get(row["id"], {}), **row}
        self.rows[row["id"]] = merged
        return Profile.model_validate(merged)


class FakeVerificationService:
    """Simulates the send-verification-code / verify-code endpoints."""

    def __init__(self, issued_code: str = "111111") -> None:
        self.issued_code = issued_code
        self.issued: dict[str, str] = {}
        self.requests: list[httpx.Request] = []
        self.send_status: int | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not request.headers.get("Authorization", "").startswith("Bearer "):
            return httpx.Response(401, text="Unauthorized")

        payload = json.loads(request.content)
        if request.url.path.endswith("/send-verification-code"):
            if self.send_status is not None:
                return httpx.Response(self.send_status, text="Upstream SMS provider unavailable")
            self.issued[payload["phone"]] = self.issued_code
            return httpx.Response(200, json={"success": True})

        if request.url.path.endswith("/verify-code"):
            expected = self.issued.get(payload["phone"])
            if expected is None or payload["code"] != expected:
                return httpx.Response(400, json={"error": "Invalid verification code"})
            return httpx.Response(200, json={"success": True, "verified": True})

        return httpx.Response(404, text="Not found")


@pytest.fixture
def client() -> TestClient:
    """
    Provide FastAPI test client for API testing.

    Example:
        >>> def test_health(client):
        >>>     response = client.get("/health")
        >>>     assert response.status_code == 200
    """
    return TestClient(app)


@pytest.fixture
def disable_rate_limits():
    """Turn off slowapi limits for API tests."""
    previous = limiter.enabled
    limiter.enabled = False
    yield
    limiter.enabled = previous


@pytest.fixture
def make_identity() -> Callable[..., IdentityRecord]:
    """Build identity records with overridable fields."""

    def _make(**overrides: Any) -> IdentityRecord:
        data: dict[str, Any] = {
            "id": TEST_USER_ID,
            "email": "a@x.com",
            "user_metadata": {},
            "created_at": datetime(2024, 1, 1, tzinfo=UTC),
            "last_sign_in_at": datetime(2024, 6, 1, tzinfo=UTC),
        }
        data.update(overrides)
        return IdentityRecord(**data)

    return _make


@pytest.fixture
def make_session(make_identity) -> Callable[..., AuthSession]:
    """Build sessions around identity records."""

    def _make(**identity_overrides: Any) -> AuthSession:
        return AuthSession(
            access_token="access-token",
            refresh_token="refresh-token",
            user=make_identity(**identity_overrides),
        )

    return _make


@pytest.fixture
def profile_store() -> InMemoryProfileStore:
    """Empty in-memory profile store."""
    return InMemoryProfileStore()


@pytest.fixture
def mock_provider() -> AsyncMock:
    """Identity provider with a live access token."""
    provider = AsyncMock(spec=IdentityProvider)
    provider.get_access_token.return_value = "access-token"
    return provider


@pytest.fixture
def verification_service() -> FakeVerificationService:
    return FakeVerificationService()


@pytest.fixture
def verification_http_client(verification_service: FakeVerificationService) -> httpx.AsyncClient:
    """HTTP client routed to the fake verification service."""
    return httpx.AsyncClient(transport=httpx.MockTransport(verification_service))


@pytest.fixture
def mock_analytics() -> Mock:
    return Mock()
