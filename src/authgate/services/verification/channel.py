"""One-time code dispatch and verification through the external verification service."""

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from src.authgate.config import settings
from src.authgate.services.auth.exceptions import ChannelError, NoSessionError
from src.authgate.services.auth.provider import IdentityProvider

logger = logging.getLogger(__name__)

SEND_CODE_PATH = "send-verification-code"
VERIFY_CODE_PATH = "verify-code"


@dataclass(frozen=True)
class ChannelResponse:
    """Parsed verification service response."""

    status_code: int
    body: dict[str, Any] = field(default_factory=dict)
    is_json: bool = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class CodeChannel:
    """
    Sends and checks one-time codes via two POST endpoints.

    Both calls are authorized with the current session's access token and
    are never retried automatically; "resend" is a user action.

    Attributes:
        provider: Identity provider used to read the current access token
        base_url: Verification service base URL (no trailing slash)
        _http_client: HTTP client for the verification service

    Example:
        >>> channel = CodeChannel(provider)
        >>> await channel.send_code("+14155550000")
        >>> await channel.verify_code("+14155550000", "111111")
    """

    def __init__(
        self,
        provider: IdentityProvider,
        http_client: httpx.AsyncClient | None = None,
        base_url: str | None = None,
    ) -> None:
        """
        Initialize the channel.

        Args:
            provider: Identity provider holding the session
            http_client: HTTP client to use (a new one is created if None)
            base_url: Service base URL (default: settings.resolved_verification_base_url)
        """
        self.provider = provider
        self.base_url = (base_url or settings.resolved_verification_base_url).rstrip("/")
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.verification_timeout_seconds)
        )

    async def send_code(self, phone: str) -> ChannelResponse:
        """
        Ask the service to send a one-time code to ``phone``.

        Raises:
            NoSessionError: If no access token is available
            ChannelError: On non-2xx status or transport failure
        """
        response = await self._post(SEND_CODE_PATH, {"phone": phone})
        if not response.ok:
            raise ChannelError(
                f"Failed to send verification code ({response.status_code})",
                status_code=response.status_code,
            )

        logger.info("Verification code sent", extra={"status_code": response.status_code})
        return response

    async def verify_code(self, phone: str, code: str) -> ChannelResponse:
        """
        Check ``code`` against the code last issued for ``phone``.

        Raises:
            NoSessionError: If no access token is available
            ChannelError: On non-2xx status (message taken from the JSON ``error``
                field when present) or transport failure
        """
        response = await self._post(VERIFY_CODE_PATH, {"phone": phone, "code": code})
        if not response.ok:
            message = response.body.get("error") if response.is_json else None
            if not isinstance(message, str) or not message:
                message = f"Verification failed ({response.status_code})"
            raise ChannelError(message, status_code=response.status_code)

        logger.info("Verification code accepted", extra={"status_code": response.status_code})
        return response

    async def _post(self, path: str, payload: dict[str, Any]) -> ChannelResponse:
        access_token = await self.provider.get_access_token()
        if not access_token:
            raise NoSessionError()

        url = f"{self.base_url}/{path}"
        try:
            response = await self._http_client.post(
                url,
                json=payload,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {access_token}",
                },
            )
        except httpx.HTTPError as e:
            logger.error(
                f"Verification service request to {path} failed: {e}",
                exc_info=True,
                extra={"error_type": "verification_request_failed"},
            )
            raise ChannelError(f"Verification service unreachable: {e}") from e

        parsed = self._parse(response)
        logger.debug(
            f"Verification service responded to {path}",
            extra={"status_code": parsed.status_code, "is_json": parsed.is_json},
        )
        return parsed

    @staticmethod
    def _parse(response: httpx.Response) -> ChannelResponse:
        """Decode JSON bodies; keep anything else as raw diagnostic text."""
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                return ChannelResponse(response.status_code, body, is_json=True)
            if body is not None:
                return ChannelResponse(response.status_code, {"data": body}, is_json=True)

        logger.info("Non-JSON response from verification service", extra={"body": response.text})
        return ChannelResponse(response.status_code, {"rawResponse": response.text})

    async def close(self) -> None:
        """Close the HTTP client if this channel created it."""
        if self._owns_client:
            await self._http_client.aclose()
