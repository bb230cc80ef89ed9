"""Structured value types exchanged with provisioners."""

from typing import Dict, List, Union

# Params, provisioner state, outputs and shared state are open-ended JSON.
JsonValue = Union[str, int, float, bool, None, Dict[str, "JsonValue"], List["JsonValue"]]
JsonObject = Dict[str, JsonValue]
