"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.authgate.config import settings
from src.authgate.features.login import router as login_router
from src.authgate.features.signup import router as signup_router
from src.authgate.features.verify_email import router as verify_email_router
from src.authgate.services.auth.dependencies import set_flow_registry
from src.authgate.services.auth.flows import LoginFlowRegistry
from src.authgate.services.rate_limiter import limiter

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle (startup and shutdown)."""
    registry = LoginFlowRegistry()
    set_flow_registry(registry)
    logger.info(
        "Login flow registry initialized",
        extra={
            "ttl_minutes": settings.login_flow_ttl_minutes,
            "max_active": settings.login_flow_max_active,
        },
    )

    yield

    set_flow_registry(None)
    logger.info("Login flow registry released", extra={"active_flows": len(registry)})


app = FastAPI(
    title="Authgate API",
    description="Email/password login with SMS second factor and email verification",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

origins = settings.cors_origins.split(",")
logger.info(f"Origins : {origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(login_router, prefix=settings.api_v1_prefix)
app.include_router(signup_router, prefix=settings.api_v1_prefix)
app.include_router(verify_email_router, prefix=settings.api_v1_prefix)


class HealthCheckResponse(BaseModel):
    """Health check response."""

    status: str


@app.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint."""
    return HealthCheckResponse(status="healthy")
