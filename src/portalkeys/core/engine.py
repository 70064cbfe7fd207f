"""
KeyEngine: one object wiring the registry, key service, assigner, lookup,
and migration together from a PortalKeysConfig.

Usage:
    from portalkeys.core.engine import KeyEngine

    engine = KeyEngine.from_config(load_config())
    slug = engine.assign_slug(EntityRef(kind="task", id="task_123"))
    match = engine.resolve_slug(slug)
"""

from __future__ import annotations

from pathlib import Path

from portalkeys.core.config.models import PortalKeysConfig
from portalkeys.core.db.connection import init_db
from portalkeys.core.errors import PermissionDeniedError
from portalkeys.core.keys.candidates import generate_candidates, normalize_key, validate_key
from portalkeys.core.keys.models import Actor, KeyRegistryEntry, Scope
from portalkeys.core.keys.registry import KeyRegistry
from portalkeys.core.keys.service import KeyService
from portalkeys.core.migration.models import MigrationResult
from portalkeys.core.migration.service import MigrationService
from portalkeys.core.slugs.assigner import SequenceAssigner
from portalkeys.core.slugs.lookup import SlugLookup
from portalkeys.core.slugs.models import EntityRef, SlugMatch


class KeyEngine:
    """Facade over the key and slug components sharing one store."""

    def __init__(self, db_path: Path | str, config: PortalKeysConfig | None = None) -> None:
        self.config = config or PortalKeysConfig()
        self.db_path = Path(db_path)
        timeout = self.config.store.busy_timeout_seconds

        init_db(self.db_path, timeout=timeout).close()

        self.registry = KeyRegistry(self.db_path, timeout=timeout)
        self.key_service = KeyService(self.registry, self.config.keys)
        self.assigner = SequenceAssigner(self.registry, self.key_service, self.config.sequence)
        self.lookup = SlugLookup(self.db_path, timeout=timeout)
        self.migration = MigrationService(self.key_service, self.assigner)

    @classmethod
    def from_config(cls, config: PortalKeysConfig, db_path: Path | str | None = None) -> KeyEngine:
        """Build an engine on the configured store, or on db_path if given."""
        return cls(db_path or config.store.db_path, config)

    def generate_key(
        self,
        scope: Scope,
        custom_key: str | None = None,
        description: str | None = None,
        is_default: bool = True,
        actor: Actor | None = None,
    ) -> int:
        return self.key_service.generate_key(
            scope,
            custom_key=custom_key,
            description=description,
            is_default=is_default,
            actor=actor,
        )

    def assign_slug(self, ref: EntityRef, created_by: str | None = None) -> str:
        return self.assigner.assign(ref, created_by=created_by)

    def resolve_slug(self, slug: str, kind: str | None = None) -> SlugMatch | None:
        return self.lookup.resolve(slug, kind)

    def run_migration(
        self, key_overrides: dict[str, str] | None = None, actor: Actor | None = None
    ) -> MigrationResult:
        _require_admin(actor, "run_migration")
        return self.migration.run(key_overrides)

    def backfill(self, actor: Actor | None = None) -> MigrationResult:
        _require_admin(actor, "backfill")
        return self.migration.backfill()

    def list_keys(
        self,
        organization_id: str | None = None,
        sub_unit_id: str | None = None,
        is_active: bool | None = None,
    ) -> list[KeyRegistryEntry]:
        return self.registry.list_keys(
            organization_id=organization_id, sub_unit_id=sub_unit_id, is_active=is_active
        )

    def update_key(
        self,
        key_id: int,
        description: str | None = None,
        is_default: bool | None = None,
        is_active: bool | None = None,
        actor: Actor | None = None,
    ) -> KeyRegistryEntry | None:
        _require_admin(actor, "update_key")
        return self.registry.update(
            key_id, description=description, is_default=is_default, is_active=is_active
        )

    def rename_key(self, old_key: str, new_key: str, actor: Actor | None = None) -> dict[str, int]:
        """
        Rename a key and rewrite the slugs built on it.

        Both keys are normalized; the new one must be valid.
        """
        _require_admin(actor, "rename_key")
        return self.registry.rename(normalize_key(old_key), validate_key(new_key))

    def candidates(self, organization_name: str, sub_unit_name: str | None = None) -> list[str]:
        """Ranked key candidates for names, without touching the registry."""
        return generate_candidates(organization_name, sub_unit_name)


def _require_admin(actor: Actor | None, operation: str) -> None:
    if actor is not None and not actor.is_admin:
        raise PermissionDeniedError(actor.role, operation)
