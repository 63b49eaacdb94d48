"""API handlers for sign-up."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from supabase import AsyncClient

from src.authgate.features.signup.models import SignUpRequest, SignUpResponse
from src.authgate.services import PostHogService
from src.authgate.services.auth.credentials import CredentialAuthenticator
from src.authgate.services.auth.dependencies import get_supabase_client
from src.authgate.services.auth.exceptions import CredentialError
from src.authgate.services.auth.provider import IdentityProvider
from src.authgate.services.rate_limiter import credentials_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/signup", tags=["signup"])


@router.post("", response_model=SignUpResponse, status_code=status.HTTP_201_CREATED)
@credentials_rate_limit
async def sign_up(
    request: Request,
    payload: SignUpRequest,
    client: AsyncClient = Depends(get_supabase_client),
) -> SignUpResponse:
    """
    Register a new user; the identity provider emails a verification link.

    Raises:
        HTTPException: 400 with the provider's message if the sign-up is rejected
        HTTPException: 500 on unexpected errors
    """
    authenticator = CredentialAuthenticator(IdentityProvider(client))
    try:
        user = await authenticator.register(
            payload.email,
            payload.password,
            full_name=payload.full_name,
            phone_number=payload.phone_number,
        )
    except CredentialError as e:
        logger.info(f"Sign up rejected: {e.message}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e
    except Exception as e:
        logger.error(f"Sign up error: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to sign up. Please try again.",
        ) from e

    if user is not None:
        PostHogService().capture(
            distinct_id=user.id,
            event="user_signed_up",
            properties={"has_phone": bool(payload.phone_number.strip())},
        )

    return SignUpResponse(
        message="Check your email for a verification link.",
        user_id=user.id if user else None,
    )
