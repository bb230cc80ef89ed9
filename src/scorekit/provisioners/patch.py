"""JSON Merge Patch (RFC 7386) for provisioner shared state."""

from __future__ import annotations

import copy
from typing import Any, Dict, Mapping, Optional


def merge_patch(current: Optional[Mapping[str, Any]], patch: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Apply ``patch`` to ``current`` and return a new mapping.

    Neither input is modified. A null leaf deletes the key, a mapping merges
    recursively into an existing mapping (or replaces a non-mapping), and any
    other value replaces the key outright.
    """
    out: Dict[str, Any] = copy.deepcopy(dict(current)) if current else {}
    if not patch:
        return out
    for key, value in patch.items():
        if value is None:
            out.pop(key, None)
        elif isinstance(value, Mapping):
            existing = out.get(key)
            out[key] = merge_patch(existing if isinstance(existing, Mapping) else None, value)
        else:
            out[key] = copy.deepcopy(value)
    return out
