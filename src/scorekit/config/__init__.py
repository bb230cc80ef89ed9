"""
scorekit configuration.

Pydantic-based settings read from SCOREKIT_* environment variables and
an optional .env file.
"""

from scorekit.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
