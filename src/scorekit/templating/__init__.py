"""Template substitution with secret-access tracking."""

from scorekit.templating.substitution import (
    DEFAULT_PROPERTY,
    LookedUp,
    OutputLookup,
    SubstitutionContext,
    SubstitutionResult,
    Substitutor,
    UnresolvedReference,
    substitute_string,
    substitute_tracked,
    substitute_value,
)

__all__ = [
    "DEFAULT_PROPERTY",
    "LookedUp",
    "OutputLookup",
    "SubstitutionContext",
    "SubstitutionResult",
    "Substitutor",
    "UnresolvedReference",
    "substitute_string",
    "substitute_tracked",
    "substitute_value",
]
