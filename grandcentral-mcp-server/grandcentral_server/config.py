"""Runtime configuration loaded from environment variables."""

import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field


class Settings(BaseModel):
    """Client settings."""

    base_url: str = Field(default="http://localhost:8000", description="API host")
    api_prefix: str = Field(default="/api/v1", description="Versioned API prefix")
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    session_file: str = Field(
        default_factory=lambda: str(Path.home() / ".grandcentral_session.json"),
        description="Where device state (token, employee, preferences) is persisted",
    )
    language: Literal["en", "ar"] = Field(default="en", description="Preferred language")
    login_id: Optional[str] = Field(None, description="Email or phone used to request an OTP")
    password: Optional[str] = Field(None, description="Password used to request an OTP")

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from the environment.

        Environment variable mapping:
        - GRANDCENTRAL_BASE_URL → base_url
        - GRANDCENTRAL_API_PREFIX → api_prefix
        - GRANDCENTRAL_TIMEOUT → timeout
        - GRANDCENTRAL_SESSION_FILE → session_file
        - GRANDCENTRAL_LANGUAGE → language
        - GRANDCENTRAL_LOGIN_ID / GRANDCENTRAL_PASSWORD → login_id / password

        Raises:
            pydantic.ValidationError: If a variable holds an invalid value
        """
        mapping = {
            "base_url": "GRANDCENTRAL_BASE_URL",
            "api_prefix": "GRANDCENTRAL_API_PREFIX",
            "timeout": "GRANDCENTRAL_TIMEOUT",
            "session_file": "GRANDCENTRAL_SESSION_FILE",
            "language": "GRANDCENTRAL_LANGUAGE",
            "login_id": "GRANDCENTRAL_LOGIN_ID",
            "password": "GRANDCENTRAL_PASSWORD",
        }
        values = {}
        for field_name, env_name in mapping.items():
            value = os.environ.get(env_name)
            if value:
                values[field_name] = value
        return cls(**values)

    @property
    def has_credentials(self) -> bool:
        return bool(self.login_id and self.password)
