"""
Tests for bulk migration and backfill.

Tests cover:
- Registry rebuilt with one default key per scope
- Key overrides by organization (or Org/SubUnit) name
- Deterministic re-slugging order: projects, sprints, tasks per project
- Per-entity failures counted, not raised
- Backfill leaving existing slugs alone
"""

from collections.abc import Callable
from pathlib import Path

import pytest

from portalkeys.core.config.models import KeysConfig, SequenceConfig
from portalkeys.core.db import get_connection
from portalkeys.core.db.entities import get_entity
from portalkeys.core.errors import InvalidKeyError
from portalkeys.core.keys.models import Scope
from portalkeys.core.keys.registry import KeyRegistry
from portalkeys.core.keys.service import KeyService
from portalkeys.core.migration.service import MigrationService
from portalkeys.core.slugs.assigner import SequenceAssigner
from portalkeys.core.slugs.models import EntityRef


def _migration(registry: KeyRegistry, keys_config: KeysConfig | None = None) -> MigrationService:
    service = KeyService(registry, keys_config or KeysConfig())
    assigner = SequenceAssigner(registry, service, SequenceConfig(retry_delay_ms=0))
    return MigrationService(service, assigner)


def _slug(db_path: Path, kind: str, entity_id: str) -> str | None:
    with get_connection(db_path) as conn:
        row = get_entity(conn, kind, entity_id)
    assert row is not None
    return row["slug"]


@pytest.fixture
def migration(registry: KeyRegistry) -> MigrationService:
    return _migration(registry)


class TestRun:
    """Tests for MigrationService.run."""

    def test_one_key_per_organization(self, migration: MigrationService) -> None:
        result = migration.run()

        assert result.keys == {"Acme": "ACME", "Squirrels": "SQUI", "Design Team": "DT"}
        assert result.keys_created == 3
        assert result.processed == 0
        assert all(entry.is_default for entry in migration.registry.list_keys())

    def test_overrides(self, migration: MigrationService) -> None:
        result = migration.run({"Squirrels": "sqrl"})

        assert result.keys["Squirrels"] == "SQRL"

    def test_override_taking_a_later_scopes_key(self, migration: MigrationService) -> None:
        """Design Team's preferred DT is taken by the override, so it falls back."""
        result = migration.run({"Squirrels": "DT"})

        assert result.keys["Squirrels"] == "DT"
        assert result.keys["Design Team"] == "DESIG"

    def test_invalid_override(self, migration: MigrationService) -> None:
        with pytest.raises(InvalidKeyError):
            migration.run({"Acme": "!"})

    def test_old_keys_and_slugs_are_replaced(
        self,
        migration: MigrationService,
        seeded_db: Path,
        make_project: Callable[..., str],
        make_task: Callable[..., str],
    ) -> None:
        project_id = make_project("org_acme")
        task_id = make_task(project_id)
        migration.key_service.generate_key(Scope(organization_id="org_acme"), custom_key="OLD")
        assert migration.assigner.assign(EntityRef(kind="task", id=task_id)) == "OLD-1"

        result = migration.run()

        assert "OLD" not in [e.key for e in migration.registry.list_keys()]
        assert _slug(seeded_db, "task", task_id) == "ACME-1"
        assert _slug(seeded_db, "project", project_id) == "ACME-P-1"
        assert result.processed == result.migrated == 2

    def test_deterministic_order(
        self,
        migration: MigrationService,
        seeded_db: Path,
        make_project: Callable[..., str],
        make_sprint: Callable[..., str],
        make_task: Callable[..., str],
    ) -> None:
        """Projects and sprints by creation; tasks grouped per project, then by creation."""
        older = make_project("org_acme", "Older", created_at="2024-01-01T00:00:00.000000+00:00")
        newer = make_project("org_acme", "Newer", created_at="2024-02-01T00:00:00.000000+00:00")
        late_sprint = make_sprint("org_acme", created_at="2024-05-01T00:00:00.000000+00:00")
        early_sprint = make_sprint("org_acme", created_at="2024-04-01T00:00:00.000000+00:00")
        newer_task = make_task(newer, created_at="2024-03-01T00:00:00.000000+00:00")
        older_task_2 = make_task(older, created_at="2024-03-03T00:00:00.000000+00:00")
        older_task_1 = make_task(older, created_at="2024-03-02T00:00:00.000000+00:00")

        result = migration.run()

        assert result.migrated == 7
        assert _slug(seeded_db, "project", newer) == "ACME-P-2"
        assert _slug(seeded_db, "project", older) == "ACME-P-1"
        assert _slug(seeded_db, "sprint", early_sprint) == "ACME-S-1"
        assert _slug(seeded_db, "sprint", late_sprint) == "ACME-S-2"
        assert _slug(seeded_db, "task", older_task_1) == "ACME-1"
        assert _slug(seeded_db, "task", older_task_2) == "ACME-2"
        assert _slug(seeded_db, "task", newer_task) == "ACME-3"

    def test_counters_match_entities(
        self,
        migration: MigrationService,
        make_project: Callable[..., str],
        make_task: Callable[..., str],
    ) -> None:
        project_id = make_project("org_squirrels")
        for _ in range(4):
            make_task(project_id)

        migration.run()

        entry = migration.registry.get_by_key("SQUI")
        assert entry is not None
        assert (entry.last_project_number, entry.last_task_number) == (1, 4)

    def test_failures_are_counted(
        self,
        migration: MigrationService,
        make_project: Callable[..., str],
        make_task: Callable[..., str],
    ) -> None:
        orphan = make_task(None, "Orphan")
        make_task(make_project("org_acme"))

        result = migration.run()

        assert result.processed == 3
        assert result.migrated == 2
        assert result.failed == 1
        assert result.success is False
        assert f"task:{orphan}" in result.errors

    def test_sub_unit_scoping(self, registry: KeyRegistry) -> None:
        migration = _migration(registry, KeysConfig(scoping="sub_unit"))

        result = migration.run({"Acme/Web Team": "WEB"})

        assert result.keys == {
            "Acme/Marketing": "ACMEMA",
            "Acme/Web Team": "WEB",
            "Squirrels": "SQUI",
            "Design Team": "DT",
        }
        assert result.keys_created == 4


class TestBackfill:
    """Tests for MigrationService.backfill."""

    def test_only_missing_slugs_assigned(
        self,
        migration: MigrationService,
        seeded_db: Path,
        make_project: Callable[..., str],
        make_task: Callable[..., str],
    ) -> None:
        project_id = make_project("org_acme")
        first = make_task(project_id)
        migration.assigner.assign(EntityRef(kind="task", id=first))
        second = make_task(project_id)

        result = migration.backfill()

        assert result.processed == 2
        assert result.migrated == 2
        assert result.keys_created == 0
        assert _slug(seeded_db, "task", first) == "ACME-1"
        assert _slug(seeded_db, "task", second) == "ACME-2"
        assert _slug(seeded_db, "project", project_id) == "ACME-P-1"

    def test_creates_keys_for_new_scopes(
        self, migration: MigrationService, make_project: Callable[..., str]
    ) -> None:
        make_project("org_design")

        result = migration.backfill()

        assert result.keys_created == 1
        assert result.keys == {"org_design": "DT"}

    def test_nothing_to_do(self, migration: MigrationService) -> None:
        result = migration.backfill()

        assert (result.processed, result.migrated, result.failed) == (0, 0, 0)
