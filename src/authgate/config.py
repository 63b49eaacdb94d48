"""Application configuration using Pydantic Settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # System Configuration
    api_v1_prefix: str = "/api/v1"
    debug: bool = False
    cors_origins: str = "http://localhost:3000,http://localhost:4173"
    rate_limit_enabled: bool = True
    log_level: str = "INFO"

    # Supabase Configuration
    supabase_url: str = "https://test.supabase.co"
    supabase_anon_key: str = "test-anon-key"
    profiles_table: str = "profiles"

    # Out-of-band verification service (Supabase edge functions)
    verification_base_url: str | None = None
    verification_timeout_seconds: float = 10.0

    # Email verification
    email_redirect_to: str = "http://localhost:3000/verify-email"
    login_path: str = "/login"
    verified_redirect_delay_ms: int = 2000

    # Login flows
    login_flow_ttl_minutes: int = 15
    login_flow_max_active: int = 1000

    # PostHog Configuration
    posthog_api_key: str | None = None
    posthog_host: str = "https://app.posthog.com"

    @property
    def resolved_verification_base_url(self) -> str:
        """Base URL of the send/verify code endpoints, without trailing slash."""
        if self.verification_base_url:
            return self.verification_base_url.rstrip("/")
        return f"{self.supabase_url.rstrip('/')}/functions/v1"


settings = Settings()
