"""Client-side access to the prescription API with a local fallback."""

from .fallback import DEFAULT_POLICY, FallbackCache, FallbackPolicy, MigrationReport, MigrationState, Operation, Tier
from .http_backend import HttpPrimaryBackend

__all__ = [
    "DEFAULT_POLICY",
    "FallbackCache",
    "FallbackPolicy",
    "HttpPrimaryBackend",
    "MigrationReport",
    "MigrationState",
    "Operation",
    "Tier",
]
