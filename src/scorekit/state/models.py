"""
Project state models.

The project state is the durable record shared across runs: the workloads
that have been added, every resource they declared (keyed by ResourceUid),
the provisioner shared state, and registry extras.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, NamedTuple, Optional

import structlog

from scorekit.core.errors import ValidationError
from scorekit.core.types import JsonObject
from scorekit.provisioners.models import Provisioner

logger = structlog.get_logger()

DEFAULT_RESOURCE_CLASS = "default"
SHARED_STATE_APP_PREFIX_KEY = "app_prefix"


def resource_uid(
    workload_name: str,
    resource_name: str,
    resource_type: str,
    resource_class: str | None = None,
    resource_id: str | None = None,
) -> str:
    """Build the deterministic identity of a declared resource.

    Shared resources (those declaring an explicit id) drop the workload and
    resource name so identical declarations in different workloads collapse
    onto one entry.
    """
    res_class = resource_class or DEFAULT_RESOURCE_CLASS
    if resource_id:
        return f"{resource_type}.{res_class}#{resource_id}"
    return f"{resource_type}.{res_class}#{workload_name}.{resource_name}"


class ResourceDeclaration(NamedTuple):
    """One resource entry found in a workload spec."""

    workload: str
    name: str
    uid: str
    type: str
    class_: str
    id: str
    params: JsonObject
    metadata: JsonObject


@dataclass
class WorkloadState:
    """A workload added to the project."""

    name: str
    spec: Dict[str, Any]
    file: Optional[str] = None
    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def metadata(self) -> Dict[str, Any]:
        return self.spec.get("metadata") or {}

    @property
    def resources(self) -> Dict[str, Any]:
        return self.spec.get("resources") or {}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        result: Dict[str, Any] = {"spec": self.spec}
        if self.file is not None:
            result["file"] = self.file
        if self.extras:
            result["extras"] = self.extras
        return result

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "WorkloadState":
        return cls(
            name=name,
            spec=data.get("spec") or {},
            file=data.get("file"),
            extras=data.get("extras") or {},
        )


@dataclass
class ResourceState:
    """A tracked resource and everything its provisioner told us about it."""

    uid: str
    type: str
    class_: str
    id: str
    source_workload: str = ""
    params: JsonObject = field(default_factory=dict)
    resolved_params: JsonObject = field(default_factory=dict)
    metadata: JsonObject = field(default_factory=dict)
    state: JsonObject = field(default_factory=dict)
    values: JsonObject = field(default_factory=dict)
    secrets: JsonObject = field(default_factory=dict)
    provisioner_uri: str = ""

    @property
    def orphaned(self) -> bool:
        return not self.source_workload

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "type": self.type,
            "class": self.class_,
            "id": self.id,
            "source_workload": self.source_workload,
            "params": self.params,
            "resolved_params": self.resolved_params,
            "metadata": self.metadata,
            "state": self.state,
            "values": self.values,
            "secrets": self.secrets,
            "provisioner": self.provisioner_uri,
        }

    @classmethod
    def from_dict(cls, uid: str, data: Dict[str, Any]) -> "ResourceState":
        return cls(
            uid=uid,
            type=data["type"],
            class_=data.get("class") or DEFAULT_RESOURCE_CLASS,
            id=data.get("id") or "",
            source_workload=data.get("source_workload") or "",
            params=data.get("params") or {},
            resolved_params=data.get("resolved_params") or {},
            metadata=data.get("metadata") or {},
            state=data.get("state") or {},
            values=data.get("values") or {},
            secrets=data.get("secrets") or {},
            provisioner_uri=data.get("provisioner") or "",
        )


@dataclass
class StateExtras:
    """Project-level settings stored beside the state."""

    provisioners: List[Provisioner] = field(default_factory=list)
    app_prefix: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "app_prefix": self.app_prefix,
            "provisioners": [p.to_dict() for p in self.provisioners],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StateExtras":
        return cls(
            provisioners=[Provisioner.from_dict(p) for p in data.get("provisioners") or []],
            app_prefix=data.get("app_prefix") or "",
        )


@dataclass
class ProjectState:
    """Complete persisted state of a project."""

    workloads: Dict[str, WorkloadState] = field(default_factory=dict)
    resources: Dict[str, ResourceState] = field(default_factory=dict)
    shared_state: JsonObject = field(default_factory=dict)
    extras: StateExtras = field(default_factory=StateExtras)

    def copy(self) -> "ProjectState":
        return copy.deepcopy(self)

    def with_workload(
        self,
        spec: Dict[str, Any],
        file: str | None = None,
        extras: Dict[str, Any] | None = None,
    ) -> "ProjectState":
        """Return a new state with the workload added or replaced by name."""
        name = (spec.get("metadata") or {}).get("name")
        if not isinstance(name, str) or not name:
            raise ValidationError("workload metadata.name must be a non-empty string")
        out = self.copy()
        out.workloads[name] = WorkloadState(name=name, spec=copy.deepcopy(spec), file=file, extras=extras or {})
        return out

    def iter_declarations(self) -> Iterator[ResourceDeclaration]:
        """Yield every resource declaration, ordered by workload then resource name."""
        for workload_name in sorted(self.workloads):
            workload = self.workloads[workload_name]
            for res_name in sorted(workload.resources):
                decl = workload.resources[res_name]
                if not isinstance(decl, dict) or not isinstance(decl.get("type"), str) or not decl["type"]:
                    raise ValidationError(
                        f"workload '{workload_name}' resource '{res_name}' must declare a type",
                        {"workload": workload_name, "resource": res_name},
                    )
                res_class = decl.get("class") or DEFAULT_RESOURCE_CLASS
                res_id = decl.get("id") or ""
                yield ResourceDeclaration(
                    workload=workload_name,
                    name=res_name,
                    uid=resource_uid(workload_name, res_name, decl["type"], res_class, res_id),
                    type=decl["type"],
                    class_=res_class,
                    id=res_id or f"{workload_name}.{res_name}",
                    params=decl.get("params") or {},
                    metadata=decl.get("metadata") or {},
                )

    def resource_uids_for_workload(self, workload_name: str) -> Dict[str, str]:
        """Map the workload's resource names to their uids."""
        return {d.name: d.uid for d in self.iter_declarations() if d.workload == workload_name}

    def declared_resource_uids(self) -> List[str]:
        return sorted({d.uid for d in self.iter_declarations()})

    def with_primed_resources(self) -> "ProjectState":
        """Return a new state where every declared resource has an entry.

        Existing entries keep their provisioner state and outputs; the raw
        params, metadata and source workload are refreshed from the current
        declarations. Stored resources that are no longer declared are left
        untouched here and orphaned at the end of provisioning.

        A shared resource belongs to the first workload declaring it with
        params, or to the first declaring workload when none has params.
        """
        out = self.copy()
        primed: Dict[str, ResourceState] = {}
        for decl in self.iter_declarations():
            existing = primed.get(decl.uid)
            if existing is not None:
                if decl.params and existing.params and decl.params != existing.params:
                    raise ValidationError(
                        f"resource '{decl.uid}' is declared with different params by "
                        f"workloads '{existing.source_workload}' and '{decl.workload}'",
                        {"uid": decl.uid},
                    )
                if decl.params and not existing.params:
                    # The declaring workload owns resolution of its params
                    existing.params = copy.deepcopy(decl.params)
                    existing.source_workload = decl.workload
                if decl.metadata and not existing.metadata:
                    existing.metadata = copy.deepcopy(decl.metadata)
                elif decl.metadata and decl.metadata != existing.metadata:
                    logger.warning("shared_resource_metadata_ignored", uid=decl.uid, workload=decl.workload)
                continue

            previous = out.resources.get(decl.uid)
            primed[decl.uid] = ResourceState(
                uid=decl.uid,
                type=decl.type,
                class_=decl.class_,
                id=decl.id,
                source_workload=decl.workload,
                params=copy.deepcopy(decl.params),
                resolved_params=previous.resolved_params if previous else {},
                metadata=copy.deepcopy(decl.metadata),
                state=previous.state if previous else {},
                values=previous.values if previous else {},
                secrets=previous.secrets if previous else {},
                provisioner_uri=previous.provisioner_uri if previous else "",
            )

        out.resources.update(primed)
        return out

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "workloads": {name: w.to_dict() for name, w in sorted(self.workloads.items())},
            "resources": {uid: r.to_dict() for uid, r in sorted(self.resources.items())},
            "shared_state": self.shared_state,
            "extras": self.extras.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectState":
        return cls(
            workloads={
                name: WorkloadState.from_dict(name, w) for name, w in (data.get("workloads") or {}).items()
            },
            resources={
                uid: ResourceState.from_dict(uid, r) for uid, r in (data.get("resources") or {}).items()
            },
            shared_state=data.get("shared_state") or {},
            extras=StateExtras.from_dict(data.get("extras") or {}),
        )
