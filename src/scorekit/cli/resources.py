"""
CLI commands for inspecting and deprovisioning tracked resources.

Usage:
    scorekit resources list
    scorekit resources list --output json
    scorekit resources deprovision 'postgres.default#api.db'
"""

from __future__ import annotations

import argparse
import json
from typing import Any

from scorekit.cli.ux import console, info, print_table, success
from scorekit.config import get_settings
from scorekit.core.errors import main_with_error_handling
from scorekit.provisioners.provisioning import deprovision_and_persist
from scorekit.state import require_state_directory


def register_resources_parser(subparsers: argparse._SubParsersAction[Any]) -> None:
    """Register the resources command parser and its subcommands."""
    parser = subparsers.add_parser("resources", help="Inspect and deprovision tracked resources")
    parser.add_argument(
        "--state-dir",
        help="State directory (default: $SCOREKIT_STATE_DIR or .scorekit)",
    )
    sub = parser.add_subparsers(dest="resources_command")

    list_parser = sub.add_parser("list", help="List tracked resources")
    list_parser.add_argument("--output", choices=["table", "json"], default="table", help="Output format")

    deprovision_parser = sub.add_parser("deprovision", help="Deprovision a resource and forget it")
    deprovision_parser.add_argument("uid", help="Resource uid, e.g. postgres.default#api.db")


def handle_resources_command(args: argparse.Namespace) -> int:
    """Handle the resources command."""
    state_dir = getattr(args, "state_dir", None)
    command = getattr(args, "resources_command", None)

    if command == "list":
        return list_resources_command(state_dir=state_dir, output_format=args.output)
    if command == "deprovision":
        return deprovision_command(args.uid, state_dir=state_dir)

    console.print("Usage: scorekit resources {list,deprovision}")
    return 2


@main_with_error_handling()
def list_resources_command(state_dir: str | None = None, output_format: str = "table") -> int:
    """List tracked resources. Secret values are never shown."""
    sd = require_state_directory(state_dir or get_settings().state_dir)
    resources = [sd.state.resources[uid] for uid in sorted(sd.state.resources)]

    if output_format == "json":
        console.print_json(
            json.dumps(
                [
                    {
                        "uid": r.uid,
                        "source_workload": r.source_workload,
                        "orphaned": r.orphaned,
                        "provisioner": r.provisioner_uri,
                        "values": sorted(r.values),
                        "secrets": sorted(r.secrets),
                    }
                    for r in resources
                ]
            )
        )
        return 0

    if not resources:
        info("No resources tracked")
        return 0
    print_table(
        "Resources",
        ["UID", "WORKLOAD", "PROVISIONER", "OUTPUTS"],
        [
            [
                r.uid,
                r.source_workload or "(orphaned)",
                r.provisioner_uri or "-",
                ", ".join([*sorted(r.values), *(f"{k} (secret)" for k in sorted(r.secrets))]),
            ]
            for r in resources
        ],
    )
    return 0


@main_with_error_handling()
def deprovision_command(uid: str, state_dir: str | None = None) -> int:
    """Deprovision one resource through the provisioner that created it."""
    settings = get_settings()
    sd = require_state_directory(state_dir or settings.state_dir)
    deprovision_and_persist(sd, uid, settings=settings)
    success(f"Deprovisioned {uid}")
    return 0
