"""Project state: workloads, tracked resources, shared state and extras."""

from scorekit.state.directory import (
    DEFAULT_STATE_DIRECTORY,
    StateDirectory,
    init_state_directory,
    load_state_directory,
    require_state_directory,
)
from scorekit.state.models import (
    DEFAULT_RESOURCE_CLASS,
    ProjectState,
    ResourceState,
    StateExtras,
    WorkloadState,
    resource_uid,
)

__all__ = [
    "DEFAULT_RESOURCE_CLASS",
    "DEFAULT_STATE_DIRECTORY",
    "ProjectState",
    "ResourceState",
    "StateDirectory",
    "StateExtras",
    "WorkloadState",
    "init_state_directory",
    "load_state_directory",
    "require_state_directory",
    "resource_uid",
]
