"""
Slugs for tasks, sprints, and projects.

Public API:
    - Slug, EntityRef, SlugMatch: Typed models
    - format_slug / parse_slug: Convert between parts and strings
    - SequenceAssigner: Mint a slug for an entity
    - SlugLookup: Resolve a slug back to its entity
"""

from portalkeys.core.slugs.assigner import SequenceAssigner
from portalkeys.core.slugs.lookup import SlugLookup
from portalkeys.core.slugs.models import (
    ENTITY_KINDS,
    EntityKind,
    EntityRef,
    Slug,
    SlugMatch,
    format_slug,
)
from portalkeys.core.slugs.parser import (
    get_slug_kind,
    normalize_slug,
    parse_slug,
    validate_slug,
)

__all__ = [
    "ENTITY_KINDS",
    "EntityKind",
    "EntityRef",
    "SequenceAssigner",
    "Slug",
    "SlugLookup",
    "SlugMatch",
    "format_slug",
    "get_slug_kind",
    "normalize_slug",
    "parse_slug",
    "validate_slug",
]
