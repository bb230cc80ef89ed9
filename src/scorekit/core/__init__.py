"""Core modules for scorekit - centralized error definitions."""

from scorekit.core.errors import (
    ConfigurationError,
    CycleError,
    ExitCode,
    MatchError,
    PersistenceError,
    ProvisionError,
    ProvisioningAborted,
    ScoreKitError,
    SubstitutionError,
    ValidationError,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "ScoreKitError",
    "ConfigurationError",
    "ValidationError",
    "SubstitutionError",
    "CycleError",
    "MatchError",
    "ProvisionError",
    "ProvisioningAborted",
    "PersistenceError",
    "main_with_error_handling",
    "format_error_message",
]
