"""
Profile Model.

Pydantic models for the ``user_profile`` table: the full row as read
back from Supabase, and the partial update accepted by
``AuthService.update_profile``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, SecretStr, field_validator


class Profile(BaseModel):
    """Application-owned record of user-chosen attributes.

    Keyed 1:1 by the identity id.  ``grok_api_key`` is a provider secret;
    it is held as ``SecretStr`` so it never leaks into logs or reprs.
    """

    user_id: str
    email: str
    full_name: Optional[str] = None
    grok_api_key: Optional[SecretStr] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"frozen": True, "from_attributes": True, "extra": "ignore"}

    @property
    def has_api_key(self) -> bool:
        return self.grok_api_key is not None and bool(self.grok_api_key.get_secret_value())


class ProfileUpdate(BaseModel):
    """Partial profile update.

    ``None`` means "leave unchanged".  Secret fields are write-only: a
    blank value is normalised to ``None`` so it can never clear the
    stored secret.  Unknown keys are rejected rather than dropped, so a
    mistyped field name cannot report success.
    """

    full_name: Optional[str] = None
    grok_api_key: Optional[SecretStr] = None

    model_config = {"extra": "forbid"}

    @field_validator("full_name", mode="before")
    @classmethod
    def _strip_name(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("grok_api_key", mode="before")
    @classmethod
    def _blank_secret_is_absent(cls, value: object) -> object:
        if isinstance(value, SecretStr):
            value = value.get_secret_value()
        if value is None:
            return None
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value

    def to_row(self) -> dict[str, str]:
        """Columns to send to the profile store (unchanged fields omitted)."""
        row: dict[str, str] = {}
        if self.full_name is not None:
            row["full_name"] = self.full_name
        if self.grok_api_key is not None:
            row["grok_api_key"] = self.grok_api_key.get_secret_value()
        return row

    def changed_fields(self) -> list[str]:
        """Names of the fields this update touches (for audit logging)."""
        return sorted(self.to_row().keys())
