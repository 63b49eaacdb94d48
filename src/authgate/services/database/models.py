"""Pydantic models for database entities."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.authgate.services.auth.models import IdentityRecord


class Profile(BaseModel):
    """
    Row of the ``profiles`` table, keyed 1:1 by identity id.

    The soft-delete flag is stored in the ``isDeleted`` column.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    email: str | None = None
    full_name: str | None = None
    phone_number: str | None = None
    created_at: datetime | None = None
    is_deleted: bool = Field(default=False, alias="isDeleted")

    @field_validator("is_deleted", mode="before")
    @classmethod
    def _null_is_not_deleted(cls, value: Any) -> Any:
        # Rows created without the flag read back as NULL
        return False if value is None else value

    @property
    def phone(self) -> str | None:
        """Non-empty phone number, or None."""
        if self.phone_number and self.phone_number.strip():
            return self.phone_number.strip()
        return None

    @classmethod
    def seed_row(cls, user: IdentityRecord, include_soft_delete: bool = True) -> dict[str, Any]:
        """
        Build an insert payload seeded from the identity record.

        Args:
            user: Identity to seed from
            include_soft_delete: Whether to write ``isDeleted: False`` explicitly

        Returns:
            Row dictionary in table column names
        """
        row: dict[str, Any] = {
            "id": user.id,
            "email": user.email,
            "full_name": user.user_metadata.get("full_name") or "",
            "phone_number": user.user_metadata.get("phone_number") or "",
        }
        if include_soft_delete:
            row["isDeleted"] = False
        return row
