"""
CLI commands for managing registered provisioners.

Usage:
    scorekit provisioners list
    scorekit provisioners add pg postgres --cmd-binary ./pg-provisioner --cmd-args --verbose
    scorekit provisioners add dns dns --http-url http://localhost:8080/dns --res-class internal
    scorekit provisioners add cfg config --static-json '{"level": "debug"}'
    scorekit provisioners remove pg
"""

from __future__ import annotations

import argparse
import json
from typing import Any

import structlog

from scorekit.cli.ux import console, info, print_table, success
from scorekit.config import get_settings
from scorekit.core.errors import ValidationError, main_with_error_handling
from scorekit.provisioners import CommandDispatch, Dispatch, HttpDispatch, Provisioner, ProvisionerRegistry, StaticDispatch
from scorekit.state import require_state_directory

logger = structlog.get_logger()


def register_provisioners_parser(subparsers: argparse._SubParsersAction[Any]) -> None:
    """Register the provisioners command parser and its subcommands."""
    parser = subparsers.add_parser("provisioners", help="Manage registered provisioners")
    parser.add_argument(
        "--state-dir",
        help="State directory (default: $SCOREKIT_STATE_DIR or .scorekit)",
    )
    sub = parser.add_subparsers(dest="provisioners_command")

    list_parser = sub.add_parser("list", help="List provisioners in match order")
    list_parser.add_argument("--output", choices=["table", "json"], default="table", help="Output format")

    add_parser = sub.add_parser("add", help="Register a provisioner (replaces one with the same id or match)")
    add_parser.add_argument("id", help="Unique provisioner id")
    add_parser.add_argument("type", help="Resource type the provisioner handles")
    add_parser.add_argument("--res-class", default="", help="Only match this resource class")
    add_parser.add_argument("--res-id", default="", help="Only match this resource id")
    kind = add_parser.add_mutually_exclusive_group(required=True)
    kind.add_argument("--static-json", help="Fixed JSON object returned as the resource values")
    kind.add_argument("--cmd-binary", help="Executable run as '<binary> [args...] <mode>'")
    kind.add_argument("--http-url", help="Endpoint receiving POST (provision) and DELETE (deprovision)")
    add_parser.add_argument(
        "--cmd-args",
        nargs=argparse.REMAINDER,
        default=[],
        help="Arguments passed to --cmd-binary before the mode (must come last)",
    )

    remove_parser = sub.add_parser("remove", help="Remove a provisioner by id")
    remove_parser.add_argument("id", help="Provisioner id")


def handle_provisioners_command(args: argparse.Namespace) -> int:
    """Handle the provisioners command."""
    state_dir = getattr(args, "state_dir", None)
    command = getattr(args, "provisioners_command", None)

    if command == "list":
        return list_provisioners_command(state_dir=state_dir, output_format=args.output)
    if command == "add":
        return add_provisioner_command(
            provisioner_id=args.id,
            resource_type=args.type,
            resource_class=args.res_class,
            resource_id=args.res_id,
            static_json=args.static_json,
            cmd_binary=args.cmd_binary,
            cmd_args=args.cmd_args,
            http_url=args.http_url,
            state_dir=state_dir,
        )
    if command == "remove":
        return remove_provisioner_command(args.id, state_dir=state_dir)

    console.print("Usage: scorekit provisioners {list,add,remove}")
    return 2


def build_dispatch(
    static_json: str | None = None,
    cmd_binary: str | None = None,
    cmd_args: list[str] | None = None,
    http_url: str | None = None,
) -> Dispatch:
    """Build the dispatch selected by exactly one of the kind options."""
    chosen = [opt for opt in (static_json, cmd_binary, http_url) if opt is not None]
    if len(chosen) != 1:
        raise ValidationError("exactly one of --static-json, --cmd-binary, or --http-url is required")
    if cmd_args and cmd_binary is None:
        raise ValidationError("--cmd-args can only be used with --cmd-binary")

    if static_json is not None:
        try:
            values = json.loads(static_json)
        except json.JSONDecodeError as exc:
            raise ValidationError(f"--static-json is not valid JSON: {exc}") from exc
        return StaticDispatch(values=values)
    if cmd_binary is not None:
        return CommandDispatch(binary=cmd_binary, args=tuple(cmd_args or ()))
    return HttpDispatch(url=http_url or "")


@main_with_error_handling()
def list_provisioners_command(state_dir: str | None = None, output_format: str = "table") -> int:
    """List provisioners, first match first."""
    sd = require_state_directory(state_dir or get_settings().state_dir)
    provisioners = sd.state.extras.provisioners

    if output_format == "json":
        console.print_json(json.dumps([p.to_dict() for p in provisioners]))
        return 0

    if not provisioners:
        info("No provisioners registered")
        return 0
    print_table(
        "Provisioners",
        ["ID", "TYPE", "CLASS", "RES ID", "DISPATCH"],
        [
            [p.id, p.resource_type, p.resource_class or "*", p.resource_id or "*", p.describe()]
            for p in provisioners
        ],
    )
    return 0


@main_with_error_handling()
def add_provisioner_command(
    provisioner_id: str,
    resource_type: str,
    resource_class: str = "",
    resource_id: str = "",
    static_json: str | None = None,
    cmd_binary: str | None = None,
    cmd_args: list[str] | None = None,
    http_url: str | None = None,
    state_dir: str | None = None,
) -> int:
    """Register a provisioner ahead of every existing one."""
    sd = require_state_directory(state_dir or get_settings().state_dir)
    provisioner = Provisioner(
        id=provisioner_id,
        resource_type=resource_type,
        dispatch=build_dispatch(static_json, cmd_binary, cmd_args, http_url),
        resource_class=resource_class,
        resource_id=resource_id,
    )

    registry = ProvisionerRegistry(sd.state.extras.provisioners)
    removed = registry.add(provisioner)
    sd.state.extras.provisioners = registry.list()
    sd.persist()

    logger.info("provisioner_added", id=provisioner.id, match=provisioner.match_key, kind=provisioner.dispatch.kind)
    for old in removed:
        info(f"Replaced provisioner '{old.id}' ({old.match_key})")
    success(f"Added provisioner '{provisioner.id}' for {provisioner.match_key}")
    return 0


@main_with_error_handling()
def remove_provisioner_command(provisioner_id: str, state_dir: str | None = None) -> int:
    """Remove a provisioner by id."""
    sd = require_state_directory(state_dir or get_settings().state_dir)
    registry = ProvisionerRegistry(sd.state.extras.provisioners)
    if not registry.remove(provisioner_id):
        raise ValidationError(f"provisioner '{provisioner_id}' does not exist", {"id": provisioner_id})

    sd.state.extras.provisioners = registry.list()
    sd.persist()
    in_use = sorted(uid for uid, r in sd.state.resources.items() if r.provisioner_uri == provisioner_id)
    logger.info("provisioner_removed", id=provisioner_id, resources=in_use)
    success(f"Removed provisioner '{provisioner_id}'")
    for uid in in_use:
        info(f"Resource {uid} was provisioned by '{provisioner_id}' and cannot be deprovisioned until it is re-added")
    return 0
