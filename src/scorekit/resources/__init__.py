"""Resource dependency graph and output lookups."""

from scorekit.resources.graph import (
    ResourceOutputs,
    order_resources,
    outputs_for_workload,
    resource_dependencies,
)

__all__ = [
    "ResourceOutputs",
    "order_resources",
    "outputs_for_workload",
    "resource_dependencies",
]
