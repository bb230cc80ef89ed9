"""Workload file loading."""

from scorekit.specs.loader import load_workload_file, validate_workload

__all__ = ["load_workload_file", "validate_workload"]
