"""
Provisioner wire protocol.

Every dispatch kind receives the same request envelope and answers with the
same response envelope, both encoded as JSON documents.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from scorekit.core.errors import ProvisionError
from scorekit.core.types import JsonObject

PROVISION = "provision"
DEPROVISION = "deprovision"
MODES = (PROVISION, DEPROVISION)

# Exported to command provisioners alongside the trailing mode argument
MODE_ENV_VAR = "SCOREKIT_PROVISIONER_MODE"


@dataclass(frozen=True)
class ProvisionerInputs:
    """Request envelope sent to a provisioner.

    ``resource_params`` is None for deprovision requests and is then left
    out of the encoded document.
    """

    resource_uid: str
    resource_type: str
    resource_class: str
    resource_id: str
    resource_params: Optional[JsonObject]
    resource_metadata: JsonObject
    state: JsonObject
    shared: JsonObject

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "resource_uid": self.resource_uid,
            "resource_type": self.resource_type,
            "resource_class": self.resource_class,
            "resource_id": self.resource_id,
            "resource_metadata": self.resource_metadata,
            "state": self.state,
            "shared": self.shared,
        }
        if self.resource_params is not None:
            result["resource_params"] = self.resource_params
        return result

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict(), sort_keys=True).encode("utf-8")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProvisionerInputs":
        return cls(
            resource_uid=data["resource_uid"],
            resource_type=data["resource_type"],
            resource_class=data.get("resource_class") or "",
            resource_id=data.get("resource_id") or "",
            resource_params=data.get("resource_params"),
            resource_metadata=data.get("resource_metadata") or {},
            state=data.get("state") or {},
            shared=data.get("shared") or {},
        )


class ProvisionerOutputs(BaseModel):
    """Response envelope returned by a provisioner. All fields are optional."""

    model_config = ConfigDict(extra="forbid")

    state: Optional[Dict[str, Any]] = None
    values: Optional[Dict[str, Any]] = None
    secrets: Optional[Dict[str, Any]] = None
    shared: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        # Only unset fields are dropped; nulls inside ``shared`` are deletions
        return {key: value for key, value in self.model_dump().items() if value is not None}

    def has_resource_fields(self) -> bool:
        return self.state is not None or self.values is not None or self.secrets is not None


def decode_outputs(raw: bytes | str, mode: str) -> ProvisionerOutputs:
    """Parse and check a provisioner response body.

    Provision responses must not be empty. Deprovision responses may be
    empty but can only carry a shared state patch.
    """
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    if not text.strip():
        if mode == DEPROVISION:
            return ProvisionerOutputs()
        raise ProvisionError("provision request returned no output")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ProvisionError(f"failed to decode response from provisioner: {exc}", {"raw": text}) from exc

    try:
        outputs = ProvisionerOutputs.model_validate(data)
    except PydanticValidationError as exc:
        raise ProvisionError(
            f"invalid response from provisioner: {exc.error_count()} error(s)",
            {"errors": [f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in exc.errors()]},
        ) from exc

    if mode == DEPROVISION and outputs.has_resource_fields():
        raise ProvisionError("deprovision output cannot include resource state, values, or secrets")
    return outputs
