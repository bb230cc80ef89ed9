"""
Workload file loading.

Usage:
    from scorekit.specs.loader import load_workload_file

    spec = load_workload_file("score.yaml")

Only the structure the engine relies on is checked: a named workload,
containers with string variables, and well-formed resource declarations.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml

from scorekit.core.errors import ValidationError

logger = structlog.get_logger()

_RESOURCE_STRING_FIELDS = ("class", "id")
_RESOURCE_MAPPING_FIELDS = ("params", "metadata")


def load_workload_file(file_path: str | Path) -> dict[str, Any]:
    """
    Load a workload description from a YAML file.

    Args:
        file_path: Path to the workload file

    Returns:
        The raw workload mapping

    Raises:
        ValidationError: If the file cannot be read or is malformed
    """
    path = Path(file_path)
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise ValidationError(f"workload file not found: {path}", {"file": str(path)}) from exc
    except (OSError, yaml.YAMLError) as exc:
        raise ValidationError(f"failed to read workload file {path}: {exc}", {"file": str(path)}) from exc

    errors = validate_workload(data)
    if errors:
        raise ValidationError(
            f"invalid workload file {path}: {'; '.join(errors)}",
            {"file": str(path), "errors": errors},
        )
    logger.debug("workload_loaded", file=str(path), workload=data["metadata"]["name"])
    return data


def validate_workload(data: Any) -> list[str]:
    """Return the structural problems found in a workload mapping."""
    if not isinstance(data, dict):
        return ["workload must be a mapping"]

    errors: list[str] = []
    if not isinstance(data.get("apiVersion"), str) or not data["apiVersion"]:
        errors.append("apiVersion must be a non-empty string")

    metadata = data.get("metadata")
    if not isinstance(metadata, dict):
        errors.append("metadata must be a mapping")
    elif not isinstance(metadata.get("name"), str) or not metadata["name"]:
        errors.append("metadata.name must be a non-empty string")

    containers = data.get("containers")
    if not isinstance(containers, dict) or not containers:
        errors.append("containers must be a non-empty mapping")
    else:
        for name, container in containers.items():
            errors.extend(_validate_container(str(name), container))

    if data.get("service") is not None and not isinstance(data["service"], dict):
        errors.append("service must be a mapping")

    resources = data.get("resources")
    if resources is not None:
        if not isinstance(resources, dict):
            errors.append("resources must be a mapping")
        else:
            for name, resource in resources.items():
                errors.extend(_validate_resource(str(name), resource))

    return errors


def _validate_container(name: str, container: Any) -> list[str]:
    if not isinstance(container, dict):
        return [f"containers.{name} must be a mapping"]
    variables = container.get("variables")
    if variables is None:
        return []
    if not isinstance(variables, dict):
        return [f"containers.{name}.variables must be a mapping"]
    return [
        f"containers.{name}.variables.{key} must be a string"
        for key, value in variables.items()
        if not isinstance(value, str)
    ]


def _validate_resource(name: str, resource: Any) -> list[str]:
    if not isinstance(resource, dict):
        return [f"resources.{name} must be a mapping"]
    errors = []
    if not isinstance(resource.get("type"), str) or not resource["type"]:
        errors.append(f"resources.{name}.type must be a non-empty string")
    for field in _RESOURCE_STRING_FIELDS:
        if resource.get(field) is not None and not isinstance(resource[field], str):
            errors.append(f"resources.{name}.{field} must be a string")
    for field in _RESOURCE_MAPPING_FIELDS:
        if resource.get(field) is not None and not isinstance(resource[field], dict):
            errors.append(f"resources.{name}.{field} must be a mapping")
    return errors
