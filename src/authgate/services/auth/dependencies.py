"""FastAPI dependencies for the login flow registry and Supabase clients."""

import logging
from uuid import UUID

from fastapi import Depends, HTTPException, status
from supabase import AsyncClient

from src.authgate.services.auth.flows import LoginFlow, LoginFlowRegistry
from src.authgate.services.database.connection import create_supabase_client

logger = logging.getLogger(__name__)

# Global registry instance (initialized in main.py lifespan)
_flow_registry: LoginFlowRegistry | None = None


def set_flow_registry(registry: LoginFlowRegistry | None) -> None:
    """
    Set the global login flow registry.

    Called during application startup; tests reset it to None.
    """
    global _flow_registry
    _flow_registry = registry


def get_flow_registry() -> LoginFlowRegistry:
    """
    Get the global login flow registry.

    Raises:
        RuntimeError: If the registry is not initialized
    """
    if _flow_registry is None:
        raise RuntimeError(
            "Login flow registry not initialized. "
            "Ensure application startup calls set_flow_registry()."
        )
    return _flow_registry


async def get_login_flow(
    flow_id: UUID,
    registry: LoginFlowRegistry = Depends(get_flow_registry),
) -> LoginFlow:
    """
    Resolve the login flow named in the path.

    Raises:
        HTTPException: 404 if the flow is unknown or expired
    """
    flow = await registry.get(flow_id)
    if flow is None:
        logger.info(f"Login flow {flow_id} not found")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Login session not found or expired. Please log in again.",
        )
    return flow


async def get_supabase_client() -> AsyncClient:
    """Provide a fresh Supabase client for one request (sign-up, email callback)."""
    return await create_supabase_client()
