"""API handlers for login, second-factor and dashboard endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from src.authgate.features.login.models import (
    LoginFlowResponse,
    LoginRequest,
    VerifyCodeRequest,
)
from src.authgate.services.auth.dependencies import get_flow_registry, get_login_flow
from src.authgate.services.auth.exceptions import (
    CredentialError,
    InvalidTransitionError,
    NoSessionError,
    ProfileStoreError,
)
from src.authgate.services.auth.flows import LoginFlow, LoginFlowRegistry
from src.authgate.services.auth.orchestrator import DashboardView, LoginErrorCode, LoginState
from src.authgate.services.rate_limiter import (
    code_dispatch_rate_limit,
    credentials_rate_limit,
    default_rate_limit,
    public_rate_limit,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/login", tags=["login"])


def _response(flow: LoginFlow) -> LoginFlowResponse:
    snapshot = flow.orchestrator.snapshot()
    return LoginFlowResponse(flow_id=flow.flow_id, **snapshot.model_dump())


def _conflict(e: InvalidTransitionError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)


@router.post("", response_model=LoginFlowResponse)
@credentials_rate_limit
async def login(
    request: Request,
    payload: LoginRequest,
    registry: LoginFlowRegistry = Depends(get_flow_registry),
) -> LoginFlowResponse:
    """
    Submit email and password and start a login flow.

    The response state is either ``authenticated`` (no second factor) or
    ``awaiting_second_factor`` with the phone the code will be sent to.

    Raises:
        HTTPException: 401 with the provider's message if the credentials are rejected
        HTTPException: 500 if the login failed for any other reason
        HTTPException: 503 if too many login flows are active
    """
    try:
        flow = await registry.create()
    except ValueError as e:
        logger.warning(f"Cannot start login flow: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Too many login attempts in progress. Please try again shortly.",
        ) from e

    snapshot = await flow.orchestrator.submit_credentials(payload.email, payload.password)

    if snapshot.state == LoginState.IDLE:
        await registry.discard(flow.flow_id)
        if snapshot.error_code == LoginErrorCode.INVALID_CREDENTIALS:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=snapshot.error)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=snapshot.error
        )

    return LoginFlowResponse(flow_id=flow.flow_id, **snapshot.model_dump())


@router.get("/{flow_id}", response_model=LoginFlowResponse)
@default_rate_limit
async def get_login_state(
    request: Request,
    flow: LoginFlow = Depends(get_login_flow),
) -> LoginFlowResponse:
    """Get the current state of a login flow."""
    return _response(flow)


@router.post("/{flow_id}/send-code", response_model=LoginFlowResponse)
@code_dispatch_rate_limit
async def send_code(
    request: Request,
    flow: LoginFlow = Depends(get_login_flow),
) -> LoginFlowResponse:
    """
    Send (or resend) the one-time code to the phone fixed for this login.

    A channel failure is reported in ``error`` and keeps the flow in its
    second-factor state. A missing session resets the flow to ``idle``.

    Raises:
        HTTPException: 409 if the flow is not waiting for a second factor
    """
    try:
        await flow.orchestrator.request_code()
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    return _response(flow)


@router.post("/{flow_id}/verify-code", response_model=LoginFlowResponse)
@public_rate_limit
async def verify_code(
    request: Request,
    payload: VerifyCodeRequest,
    flow: LoginFlow = Depends(get_login_flow),
) -> LoginFlowResponse:
    """
    Submit the one-time code.

    A rejected code leaves the flow in ``verify_failed``; the user may retry
    or request a new code without logging in again.

    Raises:
        HTTPException: 409 if the flow is not waiting for a second factor
    """
    try:
        await flow.orchestrator.submit_code(payload.code)
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    return _response(flow)


@router.get("/{flow_id}/dashboard", response_model=DashboardView)
@default_rate_limit
async def get_dashboard(
    request: Request,
    flow: LoginFlow = Depends(get_login_flow),
) -> DashboardView:
    """
    Get identity and profile data for the dashboard (JIT profile creation).

    Raises:
        HTTPException: 401 if the provider session is gone
        HTTPException: 409 if the login is not complete
        HTTPException: 500 if the profile cannot be loaded or created
    """
    try:
        return await flow.orchestrator.load_profile()
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    except NoSessionError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message) from e
    except ProfileStoreError as e:
        logger.error(f"Error loading dashboard for flow {flow.flow_id}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to load profile: {e.message}",
        ) from e
    except Exception as e:
        logger.error(f"Error loading dashboard for flow {flow.flow_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load profile data. Please try again.",
        ) from e


@router.post("/{flow_id}/sign-out", response_model=LoginFlowResponse)
@default_rate_limit
async def sign_out(
    request: Request,
    flow: LoginFlow = Depends(get_login_flow),
    registry: LoginFlowRegistry = Depends(get_flow_registry),
) -> LoginFlowResponse:
    """
    Sign out and discard the login flow.

    Raises:
        HTTPException: 502 if the identity provider rejects the sign-out
    """
    try:
        await flow.orchestrator.sign_out()
    except CredentialError as e:
        logger.error(f"Error signing out flow {flow.flow_id}: {e.message}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message) from e

    response = _response(flow)
    await registry.discard(flow.flow_id)
    return response
