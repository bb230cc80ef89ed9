"""
scorekit command line.

Usage:
    scorekit <command> [args]
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable, Dict, Sequence

from scorekit import __version__
from scorekit.cli.generate import handle_generate_command, register_generate_parser
from scorekit.cli.init import handle_init_command, register_init_parser
from scorekit.cli.provisioners import handle_provisioners_command, register_provisioners_parser
from scorekit.cli.resources import handle_resources_command, register_resources_parser
from scorekit.config import get_settings
from scorekit.logging import configure_logging

HANDLERS: Dict[str, Callable[[argparse.Namespace], int]] = {
    "init": handle_init_command,
    "generate": handle_generate_command,
    "provisioners": handle_provisioners_command,
    "resources": handle_resources_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scorekit",
        description="Provision workload resources and generate deployment manifests",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    register_init_parser(subparsers)
    register_generate_parser(subparsers)
    register_provisioners_parser(subparsers)
    register_resources_parser(subparsers)

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    level = logging.DEBUG if args.verbose or settings.debug else settings.log_level.upper()
    configure_logging(level, json_output=settings.log_json)

    handler = HANDLERS.get(args.command or "")
    if handler is None:
        parser.print_help()
        sys.exit(2)

    sys.exit(handler(args))


if __name__ == "__main__":
    main()
