"""
portalkeys - project key and slug assignment engine.

Derives short, globally unique project keys from organization names and
assigns immutable, sequential slugs (ACME-42, ACME-S-3, ACME-P-2) to tasks,
sprints, and projects.
"""

__version__ = "0.4.0.dev0"

# Re-export core models for convenience
from portalkeys.core.config.models import PortalKeysConfig
from portalkeys.core.keys.models import KeyRegistryEntry, Scope
from portalkeys.core.slugs.models import EntityKind, EntityRef, Slug

__all__ = [
    "EntityKind",
    "EntityRef",
    "KeyRegistryEntry",
    "PortalKeysConfig",
    "Scope",
    "Slug",
    "__version__",
]
