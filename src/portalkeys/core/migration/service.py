"""
Bulk migration and backfill.

run() rebuilds the registry from scratch and re-slugs every entity in a
deterministic order:
1. Delete all registry rows and clear every slug
2. Create one default key per scope (overrides first, else derived)
3. Re-slug projects, then sprints, then tasks grouped per project, each in
   creation order

backfill() only slugs entities that have none, keeping existing keys.

Both assume exclusive access to the store: assignment runs with no
retries. A failing entity is logged and counted, never propagated.
"""

from __future__ import annotations

import logging
import sqlite3

from portalkeys.core.db.entities import (
    clear_slugs,
    list_entities,
    list_organizations,
    list_sub_units,
)
from portalkeys.core.errors import KeyEngineError
from portalkeys.core.keys.candidates import validate_key
from portalkeys.core.keys.models import Scope
from portalkeys.core.keys.service import KeyService
from portalkeys.core.migration.models import MigrationResult
from portalkeys.core.slugs.assigner import SequenceAssigner
from portalkeys.core.slugs.models import ENTITY_KINDS, EntityRef

logger = logging.getLogger(__name__)

# Projects first so task scopes resolve against slugged projects
MIGRATION_ORDER = ("project", "sprint", "task")


class MigrationService:
    """Administrative re-slugging of the whole store."""

    def __init__(self, key_service: KeyService, assigner: SequenceAssigner) -> None:
        self.key_service = key_service
        self.assigner = assigner
        self.registry = key_service.registry

    def run(self, key_overrides: dict[str, str] | None = None) -> MigrationResult:
        """
        Rebuild all keys and slugs.

        Destructive: previously issued slugs may change. Counters restart
        from zero under the freshly created keys.

        Args:
            key_overrides: Preferred keys by scope label. The label is the
                organization name, or "Org/SubUnit" under sub-unit scoping.
                A taken override still goes through suffixing.

        Returns:
            Counts of processed, migrated, and failed entities plus the
            keys created per scope

        Raises:
            InvalidKeyError: If an override is not a valid key
        """
        overrides = {label: validate_key(key) for label, key in (key_overrides or {}).items()}

        with self.registry.connect() as conn:
            deleted = self.registry.delete_all(conn)
            cleared = {kind: clear_slugs(conn, kind) for kind in ENTITY_KINDS}
            conn.commit()
        logger.info("Migration reset: deleted %d keys, cleared slugs %s", deleted, cleared)

        result = MigrationResult()
        for label, scope in self._scopes():
            try:
                key_id = self.key_service.generate_key(scope, custom_key=overrides.get(label))
            except KeyEngineError as e:
                logger.error("Could not create key for %s: %s", label, e)
                result.errors[label] = str(e)
                continue
            entry = self.registry.get(key_id)
            if entry is not None:
                result.keys[label] = entry.key
                result.keys_created += 1

        unused = set(overrides) - set(result.keys)
        if unused:
            logger.warning("Key overrides matched no scope: %s", ", ".join(sorted(unused)))

        self._assign_all(result, only_missing=False)
        logger.info(
            "Migration finished: %d processed, %d migrated, %d failed, %d keys",
            result.processed,
            result.migrated,
            result.failed,
            result.keys_created,
        )
        return result

    def backfill(self) -> MigrationResult:
        """
        Slug every entity that has no slug yet.

        Existing keys and slugs are untouched; scopes without a key get one
        on first use.
        """
        before = len(self.registry.list_keys())
        result = MigrationResult()
        self._assign_all(result, only_missing=True)

        entries = self.registry.list_keys()
        result.keys_created = max(0, len(entries) - before)
        result.keys = {str(entry.scope): entry.key for entry in entries}
        logger.info(
            "Backfill finished: %d processed, %d migrated, %d failed",
            result.processed,
            result.migrated,
            result.failed,
        )
        return result

    def _scopes(self) -> list[tuple[str, Scope]]:
        """Every scope that gets a default key, with its override label."""
        scopes: list[tuple[str, Scope]] = []
        with self.registry.connect() as conn:
            for org in list_organizations(conn):
                org_scope = Scope(organization_id=org["id"])
                if self.key_service.config.scoping != "sub_unit":
                    scopes.append((org["name"], org_scope))
                    continue

                sub_units = list_sub_units(conn, org["id"])
                if not sub_units:
                    scopes.append((org["name"], org_scope))
                for sub_unit in sub_units:
                    scopes.append(
                        (
                            f"{org['name']}/{sub_unit['name']}",
                            Scope(organization_id=org["id"], sub_unit_id=sub_unit["id"]),
                        )
                    )
        return scopes

    def _assign_all(self, result: MigrationResult, *, only_missing: bool) -> None:
        for kind in MIGRATION_ORDER:
            with self.registry.connect() as conn:
                rows = list_entities(conn, kind)

            for row in rows:
                if only_missing and row["slug"]:
                    continue
                ref = EntityRef(kind=kind, id=row["id"])
                result.processed += 1
                try:
                    self.assigner.assign(ref, max_retries=0)
                except (KeyEngineError, sqlite3.Error) as e:
                    logger.error("Failed to slug %s: %s", ref, e)
                    result.failed += 1
                    result.errors[str(ref)] = str(e)
                    continue
                result.migrated += 1
