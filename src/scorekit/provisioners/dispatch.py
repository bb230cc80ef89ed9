"""
Provisioner dispatch mechanisms.

Three kinds share the wire protocol: a static answer, a local executable
fed over stdin/stdout, and an HTTP endpoint. Each offers ``provision`` and
``deprovision``; static deprovisioning does nothing.
"""

from __future__ import annotations

import copy
import os
import shutil
import subprocess
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Tuple

import httpx
import structlog

from scorekit.core.errors import ProvisionError
from scorekit.core.types import JsonObject
from scorekit.provisioners.protocol import (
    DEPROVISION,
    MODE_ENV_VAR,
    PROVISION,
    ProvisionerInputs,
    ProvisionerOutputs,
    decode_outputs,
)

logger = structlog.get_logger()

DEFAULT_USER_AGENT = "scorekit-provisioner-client/0.1.0"


@dataclass(frozen=True)
class StaticDispatch:
    """Answers every provision request with a fixed set of values."""

    kind: ClassVar[str] = "static"

    values: JsonObject = field(default_factory=dict)

    def provision(self, inputs: ProvisionerInputs, *, timeout: float | None = None) -> ProvisionerOutputs:
        return ProvisionerOutputs(values=copy.deepcopy(self.values))

    def deprovision(self, inputs: ProvisionerInputs, *, timeout: float | None = None) -> ProvisionerOutputs:
        return ProvisionerOutputs()

    def describe(self) -> str:
        return f"static #{len(self.values)}"

    def to_dict(self) -> Dict[str, Any]:
        return {"static": self.values}


@dataclass(frozen=True)
class CommandDispatch:
    """Runs a local executable: ``binary *args <mode>`` with the request on stdin."""

    kind: ClassVar[str] = "cmd"

    binary: str
    args: Tuple[str, ...] = ()

    def provision(self, inputs: ProvisionerInputs, *, timeout: float | None = None) -> ProvisionerOutputs:
        return decode_outputs(self._run(PROVISION, inputs, timeout), PROVISION)

    def deprovision(self, inputs: ProvisionerInputs, *, timeout: float | None = None) -> ProvisionerOutputs:
        return decode_outputs(self._run(DEPROVISION, inputs, timeout), DEPROVISION)

    def describe(self) -> str:
        return f"cmd {self.binary}"

    def to_dict(self) -> Dict[str, Any]:
        return {"cmd": {"binary": self.binary, "args": list(self.args)}}

    def _resolve_binary(self) -> str:
        if os.path.isabs(self.binary):
            return self.binary
        found = shutil.which(self.binary)
        if found is None:
            raise ProvisionError(f"failed to find '{self.binary}' on path", {"binary": self.binary})
        return found

    def _run(self, mode: str, inputs: ProvisionerInputs, timeout: float | None) -> bytes:
        binary = self._resolve_binary()
        env = {**os.environ, MODE_ENV_VAR: mode}
        try:
            result = subprocess.run(
                [binary, *self.args, mode],
                input=inputs.to_json(),
                capture_output=True,
                env=env,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise ProvisionError(
                f"cmd provisioner did not finish within {timeout}s",
                {"binary": binary, "mode": mode},
            ) from exc
        except OSError as exc:
            raise ProvisionError(f"failed to execute cmd provisioner: {exc}", {"binary": binary}) from exc

        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        if stderr:
            logger.debug("provisioner_stderr", binary=binary, mode=mode, stderr=stderr)
        if result.returncode != 0:
            raise ProvisionError(
                f"cmd provisioner exited with status {result.returncode}",
                {"binary": binary, "mode": mode, "stderr": stderr},
            )
        return result.stdout


@dataclass(frozen=True)
class HttpDispatch:
    """POSTs provision requests, and DELETEs deprovision requests, to a URL."""

    kind: ClassVar[str] = "http"

    url: str

    def provision(self, inputs: ProvisionerInputs, *, timeout: float | None = None) -> ProvisionerOutputs:
        return decode_outputs(self._request("POST", inputs, timeout), PROVISION)

    def deprovision(self, inputs: ProvisionerInputs, *, timeout: float | None = None) -> ProvisionerOutputs:
        return decode_outputs(self._request("DELETE", inputs, timeout), DEPROVISION)

    def describe(self) -> str:
        return f"http {self.url}"

    def to_dict(self) -> Dict[str, Any]:
        return {"http": {"url": self.url}}

    def _request(self, method: str, inputs: ProvisionerInputs, timeout: float | None) -> bytes:
        headers = {"Content-Type": "application/json", "User-Agent": DEFAULT_USER_AGENT}
        if method != "DELETE":
            headers["Accept"] = "application/json"
        try:
            with httpx.Client(timeout=timeout) as client:
                resp = client.request(method, self.url, content=inputs.to_json(), headers=headers)
        except httpx.HTTPError as exc:
            raise ProvisionError(f"failed to send request: {exc}", {"url": self.url}) from exc

        if not resp.is_success:
            raise ProvisionError(
                f"http provision request failed with status {resp.status_code}",
                {"url": self.url, "body": resp.text},
            )
        return resp.content
