"""Pydantic models for the login feature."""

from uuid import UUID

from pydantic import BaseModel, Field

from src.authgate.services.auth.orchestrator import LoginSnapshot


class LoginRequest(BaseModel):
    """Credential submission; password policy is enforced by the identity provider."""

    email: str = Field(min_length=1, description="User email")
    password: str = Field(min_length=1, description="User password")


class VerifyCodeRequest(BaseModel):
    """One-time code submission."""

    code: str = Field(min_length=1, description="Code received by SMS")


class LoginFlowResponse(LoginSnapshot):
    """Current state of a login attempt."""

    flow_id: UUID = Field(description="Identifier to use for the next steps of this login")

    class Config:
        """Pydantic config."""

        json_schema_extra = {
            "example": {
                "flow_id": "5b0c8a1e-6a7c-4f8e-9a53-4f1b4b2d7e10",
                "state": "awaiting_second_factor",
                "error": None,
                "error_code": None,
                "message": None,
                "phone": "+14155550000",
                "challenge": "not_started",
                "user_id": "123e4567-e89b-12d3-a456-426614174000",
                "email": "a@x.com",
            }
        }
