"""Supabase client construction."""

import logging

from supabase import AsyncClient, acreate_client
from supabase.lib.client_options import AsyncClientOptions

from src.authgate.config import settings

logger = logging.getLogger(__name__)


def client_options() -> AsyncClientOptions:
    """
    Options for per-flow clients.

    Token auto-refresh is off: it would start a background refresh task per
    signed-in client that outlives the login flow. Sessions live only as long
    as the flow that created them.
    """
    return AsyncClientOptions(auto_refresh_token=False)


async def create_supabase_client(url: str | None = None, key: str | None = None) -> AsyncClient:
    """
    Create a Supabase async client with the anon key.

    Each login flow gets its own client: the client keeps the signed-in
    session, so sharing one across users would mix their sessions. All
    profile reads and writes go through this client and respect RLS.

    Args:
        url: Supabase project URL (default: settings.supabase_url)
        key: Anon key (default: settings.supabase_anon_key)

    Returns:
        Configured async Supabase client

    Example:
        >>> client = await create_supabase_client()
        >>> response = await client.table("profiles").select("*").limit(1).execute()
    """
    client = await acreate_client(
        url or settings.supabase_url,
        key or settings.supabase_anon_key,
        options=client_options(),
    )
    logger.debug("Created Supabase client", extra={"supabase_url": url or settings.supabase_url})
    return client
