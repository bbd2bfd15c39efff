from __future__ import annotations

import os

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from .errors import DaisyconConfigError


class Credentials(BaseModel):
    """
    Daisycon login and the publisher account to read transactions for.

    Frozen: a client keeps the same credentials for its whole lifetime.
    The password is a SecretStr so it never shows up in reprs or logs.
    """

    model_config = ConfigDict(frozen=True)

    username: str = Field(..., description="Daisycon username")
    password: SecretStr = Field(..., description="Daisycon password")
    publisher_id: str = Field(..., description="Publisher ID transactions belong to")

    @field_validator("username", "publisher_id", mode="before")
    @classmethod
    def validate_non_empty(cls, v):
        if v is None:
            raise ValueError("value is required")
        v = str(v).strip()
        if not v:
            raise ValueError("value must not be empty")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value():
            raise ValueError("password must not be empty")
        return v

    @classmethod
    def from_env(cls) -> "Credentials":
        """
        Build credentials from DAISYCON_USERNAME, DAISYCON_PASSWORD and
        DAISYCON_PUBLISHER_ID.
        """
        values = {
            "username": os.getenv("DAISYCON_USERNAME", "").strip(),
            "password": os.getenv("DAISYCON_PASSWORD", ""),
            "publisher_id": os.getenv("DAISYCON_PUBLISHER_ID", "").strip(),
        }
        missing = [
            f"DAISYCON_{key.upper()}" for key, value in values.items() if not value
        ]
        if missing:
            raise DaisyconConfigError(
                f"Missing required environment variables: {', '.join(missing)}"
            )
        return cls(**values)
