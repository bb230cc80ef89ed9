"""Provisioner registration records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Union
from urllib.parse import urlparse

from scorekit.core.errors import ValidationError
from scorekit.provisioners.dispatch import CommandDispatch, HttpDispatch, StaticDispatch
from scorekit.provisioners.protocol import ProvisionerInputs, ProvisionerOutputs

Dispatch = Union[StaticDispatch, CommandDispatch, HttpDispatch]
DISPATCH_KINDS = (StaticDispatch, CommandDispatch, HttpDispatch)


@dataclass(frozen=True)
class Provisioner:
    """A registered provisioner.

    ``resource_class`` and ``resource_id`` are match patterns where the empty
    string matches anything.
    """

    id: str
    resource_type: str
    dispatch: Dispatch
    resource_class: str = ""
    resource_id: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise ValidationError("provisioner id is required")
        if not self.resource_type:
            raise ValidationError("provisioner resource type is required", {"provisioner": self.id})
        if not isinstance(self.dispatch, DISPATCH_KINDS):
            raise ValidationError(
                "provisioner must define exactly one of static, cmd, or http",
                {"provisioner": self.id},
            )
        if isinstance(self.dispatch, HttpDispatch):
            parsed = urlparse(self.dispatch.url)
            if not parsed.scheme or not parsed.netloc:
                raise ValidationError(
                    f"invalid url '{self.dispatch.url}' for an http provisioner",
                    {"provisioner": self.id},
                )
        if isinstance(self.dispatch, CommandDispatch) and not self.dispatch.binary:
            raise ValidationError("cmd provisioner requires a binary", {"provisioner": self.id})
        if isinstance(self.dispatch, StaticDispatch) and not isinstance(self.dispatch.values, dict):
            raise ValidationError("static provisioner values must be a mapping", {"provisioner": self.id})

    @property
    def match_key(self) -> str:
        return f"{self.resource_type}.{self.resource_class}#{self.resource_id}"

    def matches(self, resource_type: str, resource_class: str, resource_id: str) -> bool:
        if self.resource_type != resource_type:
            return False
        if self.resource_class and self.resource_class != resource_class:
            return False
        if self.resource_id and self.resource_id != resource_id:
            return False
        return True

    def provision(self, inputs: ProvisionerInputs, *, timeout: float | None = None) -> ProvisionerOutputs:
        return self.dispatch.provision(inputs, timeout=timeout)

    def deprovision(self, inputs: ProvisionerInputs, *, timeout: float | None = None) -> ProvisionerOutputs:
        return self.dispatch.deprovision(inputs, timeout=timeout)

    def describe(self) -> str:
        return self.dispatch.describe()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "resource_type": self.resource_type,
            "resource_class": self.resource_class,
            "resource_id": self.resource_id,
            **self.dispatch.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Provisioner":
        kinds = [k for k in ("static", "cmd", "http") if data.get(k) is not None]
        if len(kinds) != 1:
            raise ValidationError(
                "provisioner must define exactly one of static, cmd, or http",
                {"provisioner": data.get("id"), "found": kinds},
            )
        dispatch: Dispatch
        if kinds[0] == "static":
            dispatch = StaticDispatch(values=data["static"])
        elif kinds[0] == "cmd":
            cmd = data["cmd"]
            dispatch = CommandDispatch(binary=cmd.get("binary") or "", args=tuple(cmd.get("args") or ()))
        else:
            dispatch = HttpDispatch(url=data["http"].get("url") or "")
        return cls(
            id=data.get("id") or "",
            resource_type=data.get("resource_type") or "",
            dispatch=dispatch,
            resource_class=data.get("resource_class") or "",
            resource_id=data.get("resource_id") or "",
        )
