"""
Render workload container variables.

Each variable is substituted with the tracked substitutor. A variable whose
value touched a secret output is routed to ``secrets``; everything else is
plaintext ``env``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

import structlog

from scorekit.core.errors import SubstitutionError, ValidationError
from scorekit.resources.graph import outputs_for_workload
from scorekit.state.models import ProjectState
from scorekit.templating.substitution import SubstitutionContext, Substitutor

logger = structlog.get_logger()


@dataclass
class RenderedVariables:
    """Variables of one workload, split by sensitivity."""

    workload: str
    env: Dict[str, str] = field(default_factory=dict)
    secrets: Dict[str, str] = field(default_factory=dict)

    def manifest(self, app_prefix: str = "") -> Dict[str, Any]:
        """Manifest document for the workload. Secret values are never included."""
        return {
            "app": f"{app_prefix}{self.workload}",
            "env": dict(sorted(self.env.items())),
            "secrets": sorted(self.secrets),
        }


def render_variables(state: ProjectState, workload_name: str) -> RenderedVariables:
    """Substitute every container variable of a workload.

    Containers are visited by name; a key set by more than one container
    must render to the same value in each.

    Raises:
        SubstitutionError: listing every variable that failed to resolve
        ValidationError: for an unknown workload or conflicting variables
    """
    workload = state.workloads.get(workload_name)
    if workload is None:
        raise ValidationError(f"unknown workload '{workload_name}'", {"workload": workload_name})

    substitutor = Substitutor(
        SubstitutionContext(
            metadata=workload.metadata,
            resources=outputs_for_workload(state, workload_name),
        )
    )
    rendered = RenderedVariables(workload=workload_name)
    errors: list[str] = []
    containers = workload.spec.get("containers") or {}

    for container_name in sorted(containers):
        variables = (containers[container_name] or {}).get("variables") or {}
        for key in sorted(variables):
            try:
                result = substitutor.substitute_tracked(variables[key])
            except SubstitutionError as exc:
                errors.extend(f"containers.{container_name}.variables.{key}: {e}" for e in exc.errors)
                continue

            target = rendered.secrets if result.secret_accessed else rendered.env
            other = rendered.env if result.secret_accessed else rendered.secrets
            previous = target.get(key, other.get(key))
            if previous is not None and previous != result.value:
                raise ValidationError(
                    f"variable '{key}' of workload '{workload_name}' is set to different values by multiple containers",
                    {"workload": workload_name, "variable": key},
                )
            other.pop(key, None)
            target[key] = result.value

    if errors:
        raise SubstitutionError(errors, {"workload": workload_name})

    logger.debug(
        "variables_rendered",
        workload=workload_name,
        env=len(rendered.env),
        secrets=len(rendered.secrets),
    )
    return rendered
