"""
Unified error handling for scorekit.

Every failure raised by the provisioning engine derives from ScoreKitError
and carries an exit code so CLI commands report failures consistently.

Exit Codes:
- 0: Success
- 10: Configuration error (state directory, settings)
- 11: Provision error (provisioner dispatch failure)
- 12: Validation error (placeholders, workload files, registrations, cycles)
- 13: Match error (no provisioner for a resource)
- 14: Persistence error (state document could not be written)
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    CONFIG_ERROR = 10
    PROVISION_ERROR = 11
    VALIDATION_ERROR = 12
    MATCH_ERROR = 13
    PERSISTENCE_ERROR = 14
    UNKNOWN_ERROR = 127


class ScoreKitError(Exception):
    """Base exception for scorekit errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(ScoreKitError):
    """Raised for configuration and state directory errors."""

    exit_code = ExitCode.CONFIG_ERROR


class ValidationError(ScoreKitError):
    """Raised for validation failures before any side effect happens."""

    exit_code = ExitCode.VALIDATION_ERROR


class SubstitutionError(ValidationError):
    """Raised when one or more placeholders in a template cannot be resolved.

    All failing placeholders of a single substitution call are collected in
    ``errors`` so that every bad reference is reported at once.
    """

    def __init__(self, errors: list[str], details: dict[str, Any] | None = None):
        super().__init__("; ".join(errors), details)
        self.errors = list(errors)


class CycleError(ValidationError):
    """Raised when resource params reference each other in a loop."""

    def __init__(self, cycle: list[str]):
        super().__init__(
            f"resource dependency cycle detected: {' -> '.join([*cycle, cycle[0]])}",
            {"cycle": cycle},
        )
        self.cycle = list(cycle)


class MatchError(ScoreKitError):
    """Raised when no provisioner can be found for a resource."""

    exit_code = ExitCode.MATCH_ERROR


class ProvisionError(ScoreKitError):
    """Raised when a provisioner call fails or returns a bad response."""

    exit_code = ExitCode.PROVISION_ERROR


class PersistenceError(ScoreKitError):
    """Raised when the project state document cannot be written."""

    exit_code = ExitCode.PERSISTENCE_ERROR


class ProvisioningAborted(ScoreKitError):
    """Raised when a provisioning run stops part way through.

    ``state`` holds the project state with every resource committed before
    the failure, so callers can persist completed work. The exit code is
    inherited from the error that stopped the run.
    """

    def __init__(self, uid: str, cause: ScoreKitError, state: Any):
        super().__init__(f"{uid}: {cause.message}", {"uid": uid, **cause.details})
        self.uid = uid
        self.cause = cause
        self.state = state
        self.exit_code = cause.exit_code


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI command functions that provides unified error handling.

    Catches exceptions and converts them to appropriate exit codes with
    consistent error reporting.

    Usage:
        @main_with_error_handling()
        def my_command() -> int:
            # command implementation
            return 0

    Exit codes:
        - ScoreKitError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except ScoreKitError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=int(e.exit_code),
                        **e.details,
                    )
                _print_error(e)
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return int(e.exit_code)
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130  # Standard exit code for SIGINT
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=int(ExitCode.UNKNOWN_ERROR),
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return int(ExitCode.UNKNOWN_ERROR)

        return wrapper  # type: ignore[return-value]

    return decorator


def _print_error(error: ScoreKitError) -> None:
    from scorekit.cli.ux import error as print_error

    print_error(format_error_message(error))


def format_error_message(error: ScoreKitError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
