"""
Resource dependency graph.

A resource depends on another when its raw params reference the other
through ``${resources.<name>...}``. Provisioning follows a topological
order of that graph so outputs are available before they are needed.
"""

from __future__ import annotations

import heapq
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Sequence, Set, Tuple

from scorekit.core.errors import CycleError, ValidationError
from scorekit.core.types import JsonObject
from scorekit.state.models import ProjectState
from scorekit.templating.substitution import LookedUp, UnresolvedReference, referenced_resources


def resource_dependencies(state: ProjectState, uids: Iterable[str]) -> Dict[str, Set[str]]:
    """Map each uid to the uids (within ``uids``) its raw params reference."""
    selected = set(uids)
    name_maps: Dict[str, Dict[str, str]] = {}
    deps: Dict[str, Set[str]] = {}
    for uid in selected:
        resource = state.resources[uid]
        deps[uid] = set()
        if not resource.params or not resource.source_workload:
            continue
        if resource.source_workload not in name_maps:
            name_maps[resource.source_workload] = state.resource_uids_for_workload(resource.source_workload)
        names = name_maps[resource.source_workload]
        for name in referenced_resources(resource.params):
            target = names.get(name)
            if target is not None and target in selected:
                deps[uid].add(target)
    return deps


def order_resources(state: ProjectState, uids: Iterable[str] | None = None) -> List[str]:
    """Return uids in dependency order, ties broken by uid.

    Raises:
        CycleError: naming every resource on a dependency cycle
    """
    deps = resource_dependencies(state, state.resources if uids is None else uids)

    dependents: Dict[str, List[str]] = {uid: [] for uid in deps}
    remaining: Dict[str, int] = {}
    for uid, targets in deps.items():
        remaining[uid] = len(targets)
        for target in targets:
            dependents[target].append(uid)

    ready = [uid for uid, count in remaining.items() if count == 0]
    heapq.heapify(ready)
    ordered: List[str] = []
    while ready:
        uid = heapq.heappop(ready)
        ordered.append(uid)
        for dependent in dependents[uid]:
            remaining[dependent] -= 1
            if remaining[dependent] == 0:
                heapq.heappush(ready, dependent)

    if len(ordered) != len(deps):
        emitted = set(ordered)
        blocked = {uid for uid in deps if uid not in emitted}
        raise CycleError(_find_cycle(deps, blocked))
    return ordered


def _find_cycle(deps: Dict[str, Set[str]], blocked: Set[str]) -> List[str]:
    # Every blocked node is on a cycle or downstream of one, so walking
    # dependencies from any of them must revisit a node.
    for start in sorted(blocked):
        path: List[str] = []
        on_path: Dict[str, int] = {}
        node = start
        while node not in on_path:
            on_path[node] = len(path)
            path.append(node)
            node = min(t for t in deps[node] if t in blocked)
        return path[on_path[node]:]
    return []


@dataclass(frozen=True)
class ResourceOutputs:
    """Output lookup over one resource, preferring its secrets channel."""

    uid: str
    values: JsonObject = field(default_factory=dict)
    secrets: JsonObject = field(default_factory=dict)

    def lookup(self, path: Sequence[str]) -> LookedUp:
        found, value = _traverse(self.secrets, path)
        if found:
            return LookedUp(value, secret=True)
        found, value = _traverse(self.values, path)
        if found:
            return LookedUp(value)
        raise UnresolvedReference(f"property '{'.'.join(path)}' is not set on resource '{self.uid}'")


def _traverse(data: Any, path: Sequence[str]) -> Tuple[bool, Any]:
    current = data
    for segment in path:
        if isinstance(current, dict) and segment in current:
            current = current[segment]
        elif isinstance(current, list) and segment.isdigit() and int(segment) < len(current):
            current = current[int(segment)]
        else:
            return False, None
    return True, current


def outputs_for_workload(state: ProjectState, workload_name: str) -> Dict[str, ResourceOutputs]:
    """Build the resource lookups visible to one workload, keyed by resource name."""
    if workload_name not in state.workloads:
        raise ValidationError(f"unknown workload '{workload_name}'", {"workload": workload_name})
    lookups: Dict[str, ResourceOutputs] = {}
    for name, uid in state.resource_uids_for_workload(workload_name).items():
        resource = state.resources.get(uid)
        if resource is None:
            lookups[name] = ResourceOutputs(uid=uid)
        else:
            lookups[name] = ResourceOutputs(uid=uid, values=resource.values, secrets=resource.secrets)
    return lookups
