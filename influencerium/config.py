"""Settings for the Influencerium access layer.

Every field can be set through an ``INF_<FIELD>`` environment variable.
Values are validated once, when ``settings`` is created at import.
"""

from __future__ import annotations

import logging
import re
from datetime import timedelta

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings

_RATE_LIMIT = re.compile(r"^\d+\s*(/|per)\s*\d*\s*(second|minute|hour|day|month|year)s?$", re.I)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = {"env_prefix": "INF_", "case_sensitive": False, "extra": "ignore"}

    # Storage
    db_path: str = Field(default="influencerium.db", description="SQLite database path")
    db_timeout_seconds: float = Field(
        default=5.0, gt=0, description="Seconds to wait on a locked database before failing"
    )

    # Access tokens
    jwt_secret: str = Field(default="", description="HS256 signing secret (empty = dev secret)")
    jwt_expires_in_seconds: int = Field(default=86400, ge=1, description="Access token lifetime")
    jwt_refresh_expires_in_seconds: int = Field(
        default=30 * 86400, ge=1, description="Refresh token lifetime"
    )

    # Sessions
    session_lifetime_ms: int = Field(
        default=604_800_000, ge=1, description="Session lifetime in milliseconds (7 days)"
    )

    # Logging
    log_format: str = Field(default="text", description="text or json")
    log_level: str = Field(default="INFO", description="Root log level name")

    # HTTP server
    host: str = Field(default="0.0.0.0", description="Bind address")  # noqa: S104
    port: int = Field(default=8000, ge=1, le=65535, description="Bind port")
    debug: bool = Field(default=False, description="Include store error text in 409 responses")
    cors_origins: str = Field(default="*", description="Allowed CORS origins, comma separated")
    rate_limit: str = Field(
        default="100/minute",
        description="slowapi limit string applied by default, or 'none'",
    )

    @field_validator("log_format", "log_level", "rate_limit")
    @classmethod
    def _normalize(cls, v: str, info: ValidationInfo) -> str:
        env_name = f"INF_{info.field_name.upper()}"
        if info.field_name == "log_format":
            v = v.lower()
            if v not in ("text", "json"):
                msg = f"{env_name} must be 'text' or 'json', got '{v}'"
                raise ValueError(msg)
        elif info.field_name == "log_level":
            v = v.upper()
            if not isinstance(logging.getLevelName(v), int):
                msg = f"{env_name} must be a valid Python log level, got '{v}'"
                raise ValueError(msg)
        else:
            v = v.strip()
            if v.lower() != "none" and not _RATE_LIMIT.match(v):
                msg = f"{env_name} must look like '100/minute' or be 'none', got '{v}'"
                raise ValueError(msg)
        return v

    @property
    def session_lifetime(self) -> timedelta:
        return timedelta(milliseconds=self.session_lifetime_ms)

    @property
    def rate_limit_enabled(self) -> bool:
        return self.rate_limit.lower() != "none"

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


settings = Settings()
