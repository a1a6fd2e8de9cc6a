"""
Shared configuration management for the rate-limit policy resolver.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RateLimitSettings(BaseSettings):
    """Resolver settings, read from RATELIMIT_* environment variables or .env."""

    model_config = SettingsConfigDict(
        env_prefix="RATELIMIT_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Rule document
    rate_limits_file: Optional[str] = Field(default=None)
    rate_limits_format: Optional[str] = Field(default=None, description="json, ini or yaml; inferred from suffix when unset")
    require_catch_all: bool = Field(default=False)
    store_name: str = Field(default="default")


def get_settings(**overrides) -> RateLimitSettings:
    """Get resolver settings."""
    return RateLimitSettings(**overrides)
