"""Pydantic models for the email verification feature."""

from pydantic import BaseModel, Field


class VerifyEmailRequest(BaseModel):
    """Callback URL (or just its fragment) the user landed on."""

    callback_url: str = Field("", description="URL carrying access_token/refresh_token/type")
