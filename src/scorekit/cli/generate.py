"""
CLI command for provisioning resources and generating manifests.

Usage:
    scorekit generate score.yaml
    scorekit generate api.yaml worker.yaml -o manifests.yaml
    scorekit generate score.yaml -o - --secrets-output secrets.env
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Any

import structlog
import yaml

from scorekit.cli.ux import success, warning
from scorekit.config import get_settings
from scorekit.convert import render_variables
from scorekit.core.errors import PersistenceError, ValidationError, main_with_error_handling
from scorekit.provisioners.provisioning import provision_and_persist
from scorekit.specs import load_workload_file
from scorekit.state import require_state_directory

logger = structlog.get_logger()

DEFAULT_OUTPUT = "manifests.yaml"


def register_generate_parser(subparsers: argparse._SubParsersAction[Any]) -> None:
    """Register the generate command parser."""
    generate_parser = subparsers.add_parser(
        "generate",
        help="Add workload files, provision their resources and write manifests",
    )
    generate_parser.add_argument(
        "files",
        nargs="*",
        help="Workload YAML files to add to the project",
    )
    generate_parser.add_argument(
        "--output",
        "-o",
        default=DEFAULT_OUTPUT,
        help=f"Manifests file to write, '-' for stdout (default: {DEFAULT_OUTPUT})",
    )
    generate_parser.add_argument(
        "--secrets-output",
        help="File to write secret variables to as KEY=value lines",
    )
    generate_parser.add_argument(
        "--state-dir",
        help="State directory (default: $SCOREKIT_STATE_DIR or .scorekit)",
    )


def handle_generate_command(args: argparse.Namespace) -> int:
    """Handle the generate command."""
    return generate_command(
        files=args.files,
        output=getattr(args, "output", DEFAULT_OUTPUT),
        secrets_output=getattr(args, "secrets_output", None),
        state_dir=getattr(args, "state_dir", None),
    )


@main_with_error_handling()
def generate_command(
    files: list[str],
    output: str = DEFAULT_OUTPUT,
    secrets_output: str | None = None,
    state_dir: str | None = None,
) -> int:
    """
    Add workloads to the project, provision every resource and write manifests.

    The state is persisted after provisioning, including after a failed run,
    so completed resources are not provisioned from scratch next time.

    Returns:
        Exit code (0 for success)
    """
    settings = get_settings()
    sd = require_state_directory(state_dir or settings.state_dir)
    state = sd.state

    for file in sorted(files):
        spec = load_workload_file(file)
        state = state.with_workload(spec, file=file)
        logger.info("workload_added", file=file, workload=spec["metadata"]["name"])

    if not state.workloads:
        raise ValidationError("project is empty, please add a workload file")

    state = state.with_primed_resources()
    logger.info("resources_primed", workloads=len(state.workloads), resources=len(state.resources))

    sd.state = state
    report = provision_and_persist(sd, settings=settings)
    logger.info(
        "resources_provisioned",
        provisioned=len(report.provisioned),
        orphaned=len(report.orphaned),
        duration_seconds=round(report.duration_seconds, 3),
    )
    for uid in report.orphaned:
        warning(f"Resource {uid} is no longer declared; run 'scorekit resources deprovision {uid}'")

    app_prefix = report.state.extras.app_prefix
    manifests = []
    secret_lines = []
    for name in sorted(report.state.workloads):
        rendered = render_variables(report.state, name)
        manifests.append(rendered.manifest(app_prefix))
        if rendered.secrets:
            secret_lines.append(f"# {app_prefix}{name}")
            secret_lines.extend(f"{key}={value}" for key, value in sorted(rendered.secrets.items()))

    content = yaml.safe_dump_all(manifests, explicit_start=True, default_flow_style=False, sort_keys=True)
    if output == "-":
        sys.stdout.write(content)
    else:
        _write_file(Path(output), content)
        success(f"Wrote {len(manifests)} manifest(s) to {output}")

    if secrets_output:
        _write_file(Path(secrets_output), "".join(f"{line}\n" for line in secret_lines), mode=0o600)
        success(f"Wrote secrets to {secrets_output}")
    elif any(m["secrets"] for m in manifests):
        warning("Some variables reference secret outputs; use --secrets-output to write their values")

    return 0


def _write_file(path: Path, content: str, mode: int = 0o644) -> None:
    tmp = path.with_name(f"{path.name}.tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp, path)
    except OSError as exc:
        raise PersistenceError(f"failed to write output file: {exc}", {"path": str(path)}) from exc
