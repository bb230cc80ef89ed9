"""
CLI command for initialising a project state directory.

Usage:
    scorekit init --app-prefix myorg-
    scorekit init --state-dir .scorekit
"""

from __future__ import annotations

import argparse
import re
from typing import Any

import structlog

from scorekit.cli.ux import info, success
from scorekit.config import get_settings
from scorekit.core.errors import ConfigurationError, main_with_error_handling
from scorekit.state import init_state_directory, load_state_directory

logger = structlog.get_logger()

APP_PREFIX_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*$")


def register_init_parser(subparsers: argparse._SubParsersAction[Any]) -> None:
    """Register the init command parser."""
    init_parser = subparsers.add_parser(
        "init",
        help="Initialise the project state directory",
    )
    init_parser.add_argument(
        "--app-prefix",
        help="Prefix prepended to every generated app name (required on first init)",
    )
    init_parser.add_argument(
        "--state-dir",
        help="State directory (default: $SCOREKIT_STATE_DIR or .scorekit)",
    )


def handle_init_command(args: argparse.Namespace) -> int:
    """Handle the init command."""
    return init_command(
        app_prefix=getattr(args, "app_prefix", None),
        state_dir=getattr(args, "state_dir", None),
    )


@main_with_error_handling()
def init_command(app_prefix: str | None = None, state_dir: str | None = None) -> int:
    """
    Create the state directory, or confirm an existing one.

    The app prefix is fixed by the first init; passing a different one later
    is a configuration error.

    Returns:
        Exit code (0 for success)
    """
    path = state_dir or get_settings().state_dir
    sd = load_state_directory(path)

    if sd is not None:
        current = sd.state.extras.app_prefix
        if app_prefix is not None and app_prefix != current:
            raise ConfigurationError(
                "app prefix cannot be changed after init",
                {"current": current, "requested": app_prefix},
            )
        info(f"Project already initialised in {sd.path} (app prefix '{current}')")
        return 0

    if not app_prefix:
        raise ConfigurationError("--app-prefix is required when initialising a new project")
    if not APP_PREFIX_PATTERN.match(app_prefix):
        raise ConfigurationError(
            "app prefix must start with a lowercase letter or digit and contain only "
            "lowercase letters, digits and dashes",
            {"app_prefix": app_prefix},
        )

    sd = init_state_directory(path, app_prefix)
    logger.info("state_directory_initialised", path=str(sd.path), app_prefix=app_prefix)
    success(f"Initialised project in {sd.path}")
    return 0
