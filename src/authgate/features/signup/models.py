"""Pydantic models for the sign-up feature."""

from pydantic import BaseModel, Field


class SignUpRequest(BaseModel):
    """Sign-up form; name and phone are stored in the identity metadata."""

    email: str = Field(min_length=1, description="User email")
    password: str = Field(min_length=1, description="User password")
    full_name: str = Field("", description="User's full name")
    phone_number: str = Field(
        "", description="Phone number in E.164 format (e.g., +14155552671); enables 2FA"
    )


class SignUpResponse(BaseModel):
    """Response model for sign-up."""

    message: str
    user_id: str | None = None
