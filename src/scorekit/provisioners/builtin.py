"""
Helper for writing command provisioners in Python.

A provisioner script only defines the two callbacks:

    from scorekit.provisioners.builtin import run

    def provision(inputs):
        return {"values": {"host": "localhost"}}

    if __name__ == "__main__":
        raise SystemExit(run(provision))

The request is read from stdin, the mode is the trailing argument, and the
response is written to stdout. Logs go to stderr, where the caller collects
them.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, TextIO, Union

import structlog
from pydantic import ValidationError as PydanticValidationError

from scorekit.core.errors import ProvisionError, ScoreKitError
from scorekit.logging import configure_logging
from scorekit.provisioners.protocol import DEPROVISION, MODES, PROVISION, ProvisionerInputs, ProvisionerOutputs

logger = structlog.get_logger()

_INPUT_FIELDS = frozenset(
    {
        "resource_uid",
        "resource_type",
        "resource_class",
        "resource_id",
        "resource_params",
        "resource_metadata",
        "state",
        "shared",
    }
)

HandlerResult = Union[ProvisionerOutputs, Mapping[str, Any], None]
Handler = Callable[[ProvisionerInputs], HandlerResult]


def read_inputs(stream: TextIO) -> ProvisionerInputs:
    """Decode a request envelope, rejecting unknown fields."""
    try:
        data = json.load(stream)
    except json.JSONDecodeError as exc:
        raise ProvisionError(f"failed to decode provisioner inputs: {exc}") from exc
    if not isinstance(data, dict):
        raise ProvisionError("failed to decode provisioner inputs: expected a JSON object")
    unknown = sorted(set(data) - _INPUT_FIELDS)
    if unknown:
        raise ProvisionError(f"failed to decode provisioner inputs: unknown fields {unknown}")
    if not data.get("resource_uid") or not data.get("resource_type"):
        raise ProvisionError("failed to decode provisioner inputs: resource_uid and resource_type are required")
    return ProvisionerInputs.from_dict(data)


def _to_outputs(result: HandlerResult) -> ProvisionerOutputs:
    if result is None:
        return ProvisionerOutputs()
    if isinstance(result, ProvisionerOutputs):
        return result
    try:
        return ProvisionerOutputs.model_validate(dict(result))
    except PydanticValidationError as exc:
        raise ProvisionError(f"invalid provisioner output: {exc.error_count()} error(s)") from exc


def run(
    provision: Handler,
    deprovision: Optional[Handler] = None,
    *,
    argv: Optional[Sequence[str]] = None,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
) -> int:
    """Run a provisioner callback for the mode named by the last argument.

    Without a ``deprovision`` callback deprovisioning succeeds with an empty
    response. Returns the process exit code.
    """
    configure_logging(logging.INFO, json_output=True)
    args = list(sys.argv[1:] if argv is None else argv)
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout

    mode = args[-1] if args else ""
    if mode not in MODES:
        logger.error("unknown_provisioner_mode", mode=mode, expected=list(MODES))
        return 2

    try:
        inputs = read_inputs(stdin)
        log = logger.bind(uid=inputs.resource_uid, mode=mode)
        if mode == PROVISION:
            outputs = _to_outputs(provision(inputs))
        else:
            outputs = _to_outputs(deprovision(inputs) if deprovision is not None else None)
            if outputs.has_resource_fields():
                raise ProvisionError("deprovision output cannot include resource state, values, or secrets")
    except ScoreKitError as exc:
        logger.error("provisioner_failed", mode=mode, error=exc.message)
        return 1

    payload: Dict[str, Any] = outputs.to_dict()
    if mode == DEPROVISION and not payload:
        log.info("provisioner_succeeded")
        return 0
    stdout.write(json.dumps(payload, sort_keys=True))
    stdout.write("\n")
    stdout.flush()
    log.info("provisioner_succeeded")
    return 0
