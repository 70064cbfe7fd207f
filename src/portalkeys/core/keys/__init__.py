"""
Key generation and the key registry.

Public API:
    - generate_candidates: Ranked key candidates from names (pure)
    - KeyRegistry: Durable registry rows and the counter write path
    - UniquenessResolver: Settle on a registry-wide free key
    - KeyService: Create or look up a scope's key
"""

from portalkeys.core.keys.candidates import (
    generate_candidates,
    normalize_key,
    timestamp_candidate,
    validate_key,
    with_suffix,
)
from portalkeys.core.keys.models import Actor, KeyRegistryEntry, Scope
from portalkeys.core.keys.registry import KeyRegistry
from portalkeys.core.keys.resolver import UniquenessResolver
from portalkeys.core.keys.service import KeyService

__all__ = [
    "Actor",
    "KeyRegistry",
    "KeyRegistryEntry",
    "KeyService",
    "Scope",
    "UniquenessResolver",
    "generate_candidates",
    "normalize_key",
    "timestamp_candidate",
    "validate_key",
    "with_suffix",
]
