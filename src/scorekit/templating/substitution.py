"""Placeholder substitution for workload and resource templates.

Supports:
- ``$$`` - a literal ``$``
- ``${metadata.<key>}`` - a key of the workload metadata
- ``${resources.<name>}`` - the default output of a resource
- ``${resources.<name>.<path>...}`` - a (nested) output of a resource

``${}`` is left untouched. Non-string values are rendered as compact JSON.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Protocol, Sequence

from scorekit.core.errors import SubstitutionError

PLACEHOLDER_PATTERN = re.compile(r"\$(\$|\{([a-zA-Z0-9.\-_\[\]\"'#]+)\})")

# Output key looked up by ``${resources.<name>}`` when no property is given
DEFAULT_PROPERTY = ""


class UnresolvedReference(LookupError):
    """A single placeholder could not be resolved."""


@dataclass(frozen=True)
class LookedUp:
    """A value found by an output lookup and whether it came from a secret."""

    value: Any
    secret: bool = False


class OutputLookup(Protocol):
    """Resolves a property path against one resource's outputs."""

    def lookup(self, path: Sequence[str]) -> LookedUp:
        ...


@dataclass(frozen=True)
class SubstitutionResult:
    """Substituted value plus whether any placeholder touched a secret output."""

    value: Any
    secret_accessed: bool = False


@dataclass
class SubstitutionContext:
    """Namespaces available to placeholders."""

    metadata: Mapping[str, Any] = field(default_factory=dict)
    resources: Mapping[str, OutputLookup] = field(default_factory=dict)


@dataclass
class _Trace:
    errors: List[str] = field(default_factory=list)
    secret_accessed: bool = False


def render_scalar(value: Any) -> str:
    """Render a looked-up value as text; strings are kept verbatim."""
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


class Substitutor:
    """Resolves ``${...}`` placeholders against a SubstitutionContext."""

    def __init__(self, context: SubstitutionContext):
        self.context = context

    def substitute(self, value: Any) -> Any:
        """Recursively substitute placeholders in a value.

        - Strings: "postgres://${resources.db.host}" -> "postgres://db.internal"
        - Dicts: values are processed, keys are kept
        - Lists: items are processed
        - Other types: returned unchanged

        Raises:
            SubstitutionError: listing every placeholder that failed
        """
        return self.substitute_tracked(value).value

    def substitute_tracked(self, value: Any) -> SubstitutionResult:
        """Like substitute, also reporting whether a secret output was used.

        The flag only covers this call.
        """
        trace = _Trace()
        result = self._walk(value, trace)
        if trace.errors:
            raise SubstitutionError(trace.errors)
        return SubstitutionResult(value=result, secret_accessed=trace.secret_accessed)

    def _walk(self, value: Any, trace: _Trace) -> Any:
        if isinstance(value, str):
            return self._substitute_string(value, trace)
        elif isinstance(value, dict):
            return {k: self._walk(v, trace) for k, v in value.items()}
        elif isinstance(value, list):
            return [self._walk(item, trace) for item in value]
        else:
            return value

    def _substitute_string(self, text: str, trace: _Trace) -> str:
        def replace(match: re.Match) -> str:
            if match.group(1) == "$":
                return "$"
            try:
                rendered, secret = self._resolve(match.group(2))
            except UnresolvedReference as exc:
                trace.errors.append(str(exc))
                return ""
            if secret:
                trace.secret_accessed = True
            return rendered

        return PLACEHOLDER_PATTERN.sub(replace, text)

    def _resolve(self, ref: str) -> tuple[str, bool]:
        segments = ref.split(".")
        head = segments[0]

        if head == "metadata" and len(segments) == 2:
            key = segments[1]
            if key not in self.context.metadata:
                raise UnresolvedReference(f"'{ref}' refers to missing metadata key '{key}'")
            return render_scalar(self.context.metadata[key]), False

        if head == "resources" and len(segments) >= 2:
            name = segments[1]
            outputs = self.context.resources.get(name)
            if outputs is None:
                raise UnresolvedReference(f"'{ref}' refers to undefined resource '{name}'")
            found = outputs.lookup(segments[2:] or [DEFAULT_PROPERTY])
            return render_scalar(found.value), found.secret

        raise UnresolvedReference(f"unsupported expression reference '{ref}'")


def substitute_string(template: str, context: SubstitutionContext) -> str:
    """Substitute placeholders in a single template string."""
    return Substitutor(context).substitute(template)


def substitute_tracked(template: str, context: SubstitutionContext) -> SubstitutionResult:
    """Substitute placeholders and report whether a secret output was used."""
    return Substitutor(context).substitute_tracked(template)


def substitute_value(value: Any, context: SubstitutionContext) -> Any:
    """Substitute placeholders throughout a params-like structure."""
    return Substitutor(context).substitute(value)


def iter_references(value: Any) -> Iterator[str]:
    """Yield the path of every placeholder in a structure, skipping ``$$`` escapes."""
    if isinstance(value, str):
        for match in PLACEHOLDER_PATTERN.finditer(value):
            if match.group(2):
                yield match.group(2)
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_references(item)
    elif isinstance(value, list):
        for item in value:
            yield from iter_references(item)


def referenced_resources(value: Any) -> Dict[str, None]:
    """Resource names referenced through ``${resources.<name>...}``, in first-seen order."""
    names: Dict[str, None] = {}
    for ref in iter_references(value):
        segments = ref.split(".")
        if segments[0] == "resources" and len(segments) >= 2:
            names.setdefault(segments[1], None)
    return names
