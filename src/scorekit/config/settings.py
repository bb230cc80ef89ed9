"""
Application settings using Pydantic.

Provides environment-based configuration loading with SCOREKIT_ prefix.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SCOREKIT_",
    )

    # State directory, relative to the working directory unless absolute
    state_dir: str = ".scorekit"

    # Logging
    debug: bool = False
    log_level: str = "INFO"
    log_json: bool | None = None

    # Provisioner dispatch deadlines in seconds; unset means wait indefinitely
    command_timeout: float | None = None
    http_timeout: float | None = None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
