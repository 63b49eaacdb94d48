"""In-memory registry of active login attempts."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

from src.authgate.config import settings
from src.authgate.services.auth.credentials import CredentialAuthenticator
from src.authgate.services.auth.orchestrator import SessionOrchestrator
from src.authgate.services.auth.provider import IdentityProvider
from src.authgate.services.auth.second_factor import SecondFactorResolver
from src.authgate.services.database.connection import create_supabase_client
from src.authgate.services.database.profiles import ProfileStore
from src.authgate.services.verification.channel import CodeChannel

logger = logging.getLogger(__name__)

OrchestratorFactory = Callable[[], Awaitable[SessionOrchestrator]]


async def build_orchestrator() -> SessionOrchestrator:
    """Wire a SessionOrchestrator around a fresh Supabase client."""
    client = await create_supabase_client()
    provider = IdentityProvider(client)
    store = ProfileStore(client)
    return SessionOrchestrator(
        authenticator=CredentialAuthenticator(provider),
        resolver=SecondFactorResolver(store),
        channel=CodeChannel(provider),
        store=store,
    )


@dataclass
class LoginFlow:
    """One login attempt and its orchestrator."""

    flow_id: UUID
    orchestrator: SessionOrchestrator
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_used_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def touch(self) -> None:
        self.last_used_at = datetime.now(UTC)


class LoginFlowRegistry:
    """
    Keeps one SessionOrchestrator per login attempt, keyed by flow id.

    Flows idle for longer than the TTL are dropped on the next registry
    access. The lock only guards the dictionary; flows themselves run
    without locking.
    """

    def __init__(
        self,
        factory: OrchestratorFactory | None = None,
        ttl: timedelta | None = None,
        max_active: int | None = None,
    ) -> None:
        self._factory = factory or build_orchestrator
        self.ttl = ttl or timedelta(minutes=settings.login_flow_ttl_minutes)
        self.max_active = max_active or settings.login_flow_max_active
        self._flows: dict[UUID, LoginFlow] = {}
        self._lock = asyncio.Lock()

    async def create(self) -> LoginFlow:
        """
        Start a new login attempt.

        Raises:
            ValueError: If the active flow limit is reached
        """
        async with self._lock:
            await self._expire_stale()
            if len(self._flows) >= self.max_active:
                raise ValueError("Login flow limit reached")

            orchestrator = await self._factory()
            flow = LoginFlow(flow_id=uuid4(), orchestrator=orchestrator)
            self._flows[flow.flow_id] = flow
            logger.info("Created login flow %s", flow.flow_id)
            return flow

    async def get(self, flow_id: UUID) -> LoginFlow | None:
        async with self._lock:
            await self._expire_stale()
            flow = self._flows.get(flow_id)
            if flow is not None:
                flow.touch()
            return flow

    async def discard(self, flow_id: UUID) -> None:
        async with self._lock:
            flow = self._flows.pop(flow_id, None)
        if flow is not None:
            await flow.orchestrator.release()
            logger.info("Discarded login flow %s", flow_id)

    def __len__(self) -> int:
        return len(self._flows)

    async def _expire_stale(self) -> None:
        cutoff = datetime.now(UTC) - self.ttl
        stale = [flow_id for flow_id, flow in self._flows.items() if flow.last_used_at < cutoff]
        for flow_id in stale:
            flow = self._flows.pop(flow_id)
            await flow.orchestrator.release()
            logger.info("Expired login flow %s", flow_id)
