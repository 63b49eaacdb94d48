"""API handlers for the email verification callback."""

import logging

from fastapi import APIRouter, Depends, Request
from supabase import AsyncClient

from src.authgate.features.verify_email.models import VerifyEmailRequest
from src.authgate.services.auth.dependencies import get_supabase_client
from src.authgate.services.auth.provider import IdentityProvider
from src.authgate.services.database.profiles import ProfileStore
from src.authgate.services.rate_limiter import public_rate_limit
from src.authgate.services.verification.callback import (
    CallbackResult,
    VerificationCallbackHandler,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/verify-email", tags=["verify-email"])


@router.post("", response_model=CallbackResult)
@public_rate_limit
async def verify_email(
    request: Request,
    payload: VerifyEmailRequest,
    client: AsyncClient = Depends(get_supabase_client),
) -> CallbackResult:
    """
    Process the URL the user landed on after clicking the verification email.

    Always answers 200: every outcome, including ``callback_error``, is a
    terminal state for the caller to render. On ``verified`` the caller
    navigates to ``redirect_to`` after ``redirect_after_ms``.
    """
    handler = VerificationCallbackHandler(IdentityProvider(client), ProfileStore(client))
    result = await handler.handle(payload.callback_url)
    logger.info(f"Email verification callback finished in state {result.state.value}")
    return result
