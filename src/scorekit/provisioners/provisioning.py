"""
Provisioning orchestration.

Each declared resource moves through
unprovisioned -> matching -> dispatched -> provisioned, strictly one at a
time in dependency order. The first failure stops the run; everything
committed before it is handed back to the caller for persisting.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List

import structlog

from scorekit.config.settings import Settings, get_settings
from scorekit.core.errors import MatchError, PersistenceError, ProvisioningAborted, ScoreKitError, ValidationError
from scorekit.logging import bind_context
from scorekit.provisioners.dispatch import HttpDispatch
from scorekit.provisioners.models import Provisioner
from scorekit.provisioners.patch import merge_patch
from scorekit.provisioners.protocol import ProvisionerInputs
from scorekit.provisioners.registry import ProvisionerRegistry
from scorekit.resources.graph import order_resources, outputs_for_workload
from scorekit.state.directory import StateDirectory
from scorekit.state.models import ProjectState
from scorekit.templating.substitution import SubstitutionContext, substitute_value

logger = structlog.get_logger()


class ResourceStatus(str, Enum):
    UNPROVISIONED = "unprovisioned"
    MATCHING = "matching"
    DISPATCHED = "dispatched"
    PROVISIONED = "provisioned"
    FAILED = "failed"


@dataclass
class ProvisionReport:
    """Result of a provisioning run."""

    state: ProjectState
    provisioned: List[str] = field(default_factory=list)
    orphaned: List[str] = field(default_factory=list)
    statuses: Dict[str, ResourceStatus] = field(default_factory=dict)
    duration_seconds: float = 0.0

    @property
    def has_orphans(self) -> bool:
        return bool(self.orphaned)


def _timeout_for(provisioner: Provisioner, settings: Settings) -> float | None:
    if isinstance(provisioner.dispatch, HttpDispatch):
        return settings.http_timeout
    return settings.command_timeout


def provision_resources(state: ProjectState, *, settings: Settings | None = None) -> ProvisionReport:
    """Provision every declared resource of the project in dependency order.

    The input state is not modified. Resources are primed from the current
    workload declarations first; stored resources no longer declared are
    orphaned once the run completes.

    Raises:
        CycleError: before any provisioning when params form a loop
        ProvisioningAborted: wrapping the first resolution, matching or
            dispatch failure, with the partial state committed so far
    """
    settings = settings or get_settings()
    started = time.monotonic()
    out = state.with_primed_resources()
    declared = out.declared_resource_uids()
    order = order_resources(out, declared)

    report = ProvisionReport(state=out)
    report.statuses = {uid: ResourceStatus.UNPROVISIONED for uid in order}
    registry = ProvisionerRegistry(out.extras.provisioners)

    for uid in order:
        try:
            _provision_one(out, uid, registry, settings, report.statuses)
        except ScoreKitError as exc:
            report.statuses[uid] = ResourceStatus.FAILED
            logger.error("resource_provision_failed", uid=uid, error=exc.message)
            raise ProvisioningAborted(uid, exc, out) from exc
        report.provisioned.append(uid)

    visited = set(order)
    for uid in sorted(out.resources):
        if uid in visited:
            continue
        resource = out.resources[uid]
        resource.source_workload = ""
        report.orphaned.append(uid)
        logger.warning(
            "resource_orphaned",
            uid=uid,
            provisioner=resource.provisioner_uri,
            hint=f"run 'scorekit resources deprovision {uid}' to remove it",
        )

    report.duration_seconds = time.monotonic() - started
    return report


def _provision_one(
    out: ProjectState,
    uid: str,
    registry: ProvisionerRegistry,
    settings: Settings,
    statuses: Dict[str, ResourceStatus],
) -> None:
    resource = out.resources[uid]
    log = bind_context(uid=uid)

    resolved: Dict = {}
    if resource.params:
        workload = out.workloads[resource.source_workload]
        context = SubstitutionContext(
            metadata=workload.metadata,
            resources=outputs_for_workload(out, resource.source_workload),
        )
        resolved = substitute_value(resource.params, context)

    statuses[uid] = ResourceStatus.MATCHING
    provisioner = registry.match(resource.type, resource.class_, resource.id)
    log.debug("provisioner_matched", provisioner=provisioner.id, kind=provisioner.dispatch.kind)

    inputs = ProvisionerInputs(
        resource_uid=uid,
        resource_type=resource.type,
        resource_class=resource.class_,
        resource_id=resource.id,
        resource_params=resolved,
        resource_metadata=resource.metadata,
        state=resource.state,
        shared=out.shared_state,
    )
    statuses[uid] = ResourceStatus.DISPATCHED
    outputs = provisioner.provision(inputs, timeout=_timeout_for(provisioner, settings))

    resource.resolved_params = resolved
    if outputs.state is not None:
        resource.state = outputs.state
    if outputs.values is not None:
        resource.values = outputs.values
    if outputs.secrets is not None:
        resource.secrets = outputs.secrets
    resource.provisioner_uri = provisioner.id
    out.shared_state = merge_patch(out.shared_state, outputs.shared)
    statuses[uid] = ResourceStatus.PROVISIONED
    log.info("resource_provisioned", provisioner=provisioner.id)


def deprovision_resource(
    state: ProjectState, uid: str, *, settings: Settings | None = None
) -> ProjectState:
    """Deprovision one resource and drop it from a copy of the state.

    The provisioner is the one recorded when the resource was last
    provisioned, never a fresh match. The entry is only removed once the
    provisioner call succeeds; a shared state patch it returns is applied.
    """
    settings = settings or get_settings()
    if uid not in state.resources:
        raise ValidationError(f"resource '{uid}' does not exist", {"uid": uid})

    out = state.copy()
    resource = out.resources[uid]
    if resource.source_workload:
        logger.warning("deprovisioning_declared_resource", uid=uid, workload=resource.source_workload)

    if not resource.provisioner_uri:
        logger.info("resource_never_provisioned", uid=uid)
        del out.resources[uid]
        return out

    provisioner = ProvisionerRegistry(out.extras.provisioners).get(resource.provisioner_uri)
    if provisioner is None:
        raise MatchError(
            f"provisioner '{resource.provisioner_uri}' that provisioned '{uid}' is no longer registered",
            {"uid": uid, "provisioner": resource.provisioner_uri},
        )

    inputs = ProvisionerInputs(
        resource_uid=uid,
        resource_type=resource.type,
        resource_class=resource.class_,
        resource_id=resource.id,
        resource_params=None,
        resource_metadata=resource.metadata,
        state=resource.state,
        shared=out.shared_state,
    )
    outputs = provisioner.deprovision(inputs, timeout=_timeout_for(provisioner, settings))

    del out.resources[uid]
    out.shared_state = merge_patch(out.shared_state, outputs.shared)
    logger.info("resource_deprovisioned", uid=uid, provisioner=provisioner.id)
    return out


def provision_and_persist(directory: StateDirectory, *, settings: Settings | None = None) -> ProvisionReport:
    """Provision the directory's project and persist the outcome.

    On failure the partial state is persisted before the error propagates.
    If that write fails too, a PersistenceError reports both causes.
    """
    try:
        report = provision_resources(directory.state, settings=settings)
    except ProvisioningAborted as exc:
        directory.state = exc.state
        try:
            directory.persist()
        except PersistenceError as persist_exc:
            raise PersistenceError(
                f"failed to persist state after provisioning failure: {persist_exc.message}; "
                f"provisioning failed with: {exc.message}",
                {"uid": exc.uid, "persist_error": persist_exc.message, "provision_error": exc.message},
            ) from exc
        raise
    directory.state = report.state
    directory.persist()
    return report


def deprovision_and_persist(
    directory: StateDirectory, uid: str, *, settings: Settings | None = None
) -> ProjectState:
    directory.state = deprovision_resource(directory.state, uid, settings=settings)
    directory.persist()
    return directory.state
