"""
Tests for the key registry.

Tests cover:
- Inserting rows and the single-default-per-scope invariant
- Scope lookup order
- The conditional counter increment
- Updating flags and renaming keys (with slug rewrites)
"""

import sqlite3
from pathlib import Path

import pytest

from portalkeys.core.db import get_connection
from portalkeys.core.db.entities import insert_project, write_slug
from portalkeys.core.errors import KeyConflictError, KeyEngineError, KeyNotFoundError
from portalkeys.core.keys.models import Scope
from portalkeys.core.keys.registry import KeyRegistry

ACME = Scope(organization_id="org_acme")
ACME_MKT = Scope(organization_id="org_acme", sub_unit_id="dept_mkt")


def _insert(registry: KeyRegistry, key: str, scope: Scope = ACME, **kwargs: object) -> int:
    with registry.connect() as conn:
        key_id = registry.insert(conn, key, scope, **kwargs)  # type: ignore[arg-type]
        conn.commit()
    return key_id


class TestInsert:
    """Tests for KeyRegistry.insert."""

    def test_insert_starts_counters_at_zero(self, registry: KeyRegistry) -> None:
        key_id = _insert(registry, "ACME", is_default=True, created_by="user_1")

        entry = registry.get(key_id)
        assert entry is not None
        assert entry.key == "ACME"
        assert entry.scope == ACME
        assert entry.is_default is True
        assert entry.is_active is True
        assert entry.created_by == "user_1"
        assert (entry.last_task_number, entry.last_sprint_number, entry.last_project_number) == (
            0,
            0,
            0,
        )

    def test_duplicate_key_rejected(self, registry: KeyRegistry) -> None:
        """Keys are unique across the whole registry, whatever the scope."""
        _insert(registry, "ACME")

        with pytest.raises(sqlite3.IntegrityError):
            _insert(registry, "ACME", Scope(organization_id="org_squirrels"))

    def test_new_default_demotes_previous(self, registry: KeyRegistry) -> None:
        first = _insert(registry, "ACME", is_default=True)
        second = _insert(registry, "ACME2", is_default=True)

        assert registry.get(first).is_default is False  # type: ignore[union-attr]
        assert registry.get(second).is_default is True  # type: ignore[union-attr]

    def test_defaults_are_per_scope(self, registry: KeyRegistry) -> None:
        org_key = _insert(registry, "ACME", ACME, is_default=True)
        dept_key = _insert(registry, "ACMEMA", ACME_MKT, is_default=True)

        assert registry.get(org_key).is_default is True  # type: ignore[union-attr]
        assert registry.get(dept_key).is_default is True  # type: ignore[union-attr]

    def test_schema_rejects_two_defaults_in_a_scope(self, registry: KeyRegistry) -> None:
        """The partial unique index backs the invariant even for raw SQL."""
        _insert(registry, "ACME", is_default=True)

        with registry.connect() as conn:
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute(
                    """
                    INSERT INTO key_registry (key, organization_id, is_default,
                                              created_at, updated_at)
                    VALUES ('ACMEX', 'org_acme', 1, 'now', 'now')
                    """
                )


class TestFindForScope:
    """Tests for KeyRegistry.find_for_scope."""

    def test_none_when_scope_has_no_key(self, registry: KeyRegistry) -> None:
        assert registry.find_for_scope(ACME) is None

    def test_default_wins(self, registry: KeyRegistry) -> None:
        _insert(registry, "OLD")
        _insert(registry, "ACME", is_default=True)

        assert registry.find_for_scope(ACME).key == "ACME"  # type: ignore[union-attr]

    def test_oldest_active_without_default(self, registry: KeyRegistry) -> None:
        _insert(registry, "FIRST")
        _insert(registry, "SECOND")

        assert registry.find_for_scope(ACME).key == "FIRST"  # type: ignore[union-attr]

    def test_inactive_rows_skipped(self, registry: KeyRegistry) -> None:
        key_id = _insert(registry, "ACME", is_default=True)
        registry.update(key_id, is_active=False)

        assert registry.find_for_scope(ACME) is None

    def test_sub_unit_scope_is_separate(self, registry: KeyRegistry) -> None:
        _insert(registry, "ACME", ACME, is_default=True)

        assert registry.find_for_scope(ACME_MKT) is None


class TestTryIncrement:
    """Tests for the conditional counter write."""

    def test_increment_when_expected_matches(self, registry: KeyRegistry) -> None:
        key_id = _insert(registry, "ACME")

        with registry.connect() as conn:
            assert registry.try_increment(conn, key_id, "task", 0) is True
            conn.commit()
            assert registry.read_counter(conn, key_id, "task") == 1
            assert registry.read_counter(conn, key_id, "sprint") == 0

    def test_stale_expected_value_loses(self, registry: KeyRegistry) -> None:
        key_id = _insert(registry, "ACME")

        with registry.connect() as conn:
            assert registry.try_increment(conn, key_id, "task", 0) is True
            conn.commit()
            assert registry.try_increment(conn, key_id, "task", 0) is False
            conn.commit()
            assert registry.read_counter(conn, key_id, "task") == 1

    def test_missing_row(self, registry: KeyRegistry) -> None:
        with registry.connect() as conn:
            assert registry.try_increment(conn, 999, "task", 0) is False
            assert registry.read_counter(conn, 999, "task") is None

    def test_counters_are_independent_per_kind(self, registry: KeyRegistry) -> None:
        key_id = _insert(registry, "ACME")

        with registry.connect() as conn:
            registry.try_increment(conn, key_id, "project", 0)
            registry.try_increment(conn, key_id, "project", 1)
            registry.try_increment(conn, key_id, "sprint", 0)
            conn.commit()

        entry = registry.get(key_id)
        assert entry is not None
        assert entry.counter_for("task") == 0
        assert entry.counter_for("sprint") == 1
        assert entry.counter_for("project") == 2


class TestUpdate:
    """Tests for KeyRegistry.update."""

    def test_update_description_and_active(self, registry: KeyRegistry) -> None:
        key_id = _insert(registry, "ACME", description="old")

        entry = registry.update(key_id, description="new", is_active=False)

        assert entry is not None
        assert entry.description == "new"
        assert entry.is_active is False

    def test_promote_to_default_demotes_others(self, registry: KeyRegistry) -> None:
        first = _insert(registry, "ACME", is_default=True)
        second = _insert(registry, "ACME2")

        registry.update(second, is_default=True)

        assert registry.get(first).is_default is False  # type: ignore[union-attr]
        assert registry.get(second).is_default is True  # type: ignore[union-attr]

    def test_unknown_id(self, registry: KeyRegistry) -> None:
        assert registry.update(999, description="x") is None


class TestListKeys:
    """Tests for KeyRegistry.list_keys."""

    def test_sorted_and_filtered(self, registry: KeyRegistry) -> None:
        _insert(registry, "ZED", ACME)
        _insert(registry, "ALPHA", ACME_MKT)
        inactive = _insert(registry, "SQUI", Scope(organization_id="org_squirrels"))
        registry.update(inactive, is_active=False)

        assert [e.key for e in registry.list_keys()] == ["ALPHA", "SQUI", "ZED"]
        assert [e.key for e in registry.list_keys(organization_id="org_acme")] == ["ALPHA", "ZED"]
        assert [e.key for e in registry.list_keys(sub_unit_id="dept_mkt")] == ["ALPHA"]
        assert [e.key for e in registry.list_keys(is_active=False)] == ["SQUI"]


class TestRename:
    """Tests for KeyRegistry.rename."""

    def test_rename_rewrites_slugs(self, registry: KeyRegistry, seeded_db: Path) -> None:
        key_id = _insert(registry, "ACME", is_default=True)
        with get_connection(seeded_db) as conn:
            project_id = insert_project(conn, "org_acme", "Website")
            write_slug(conn, "project", project_id, "ACME-P-7", "ACME", 7)
            other_id = insert_project(conn, "org_squirrels", "Other")
            write_slug(conn, "project", other_id, "SQUI-P-1", "SQUI", 1)
            conn.commit()

        rewritten = registry.rename("ACME", "ACMEX")

        assert rewritten == {"task": 0, "sprint": 0, "project": 1}
        assert registry.get(key_id).key == "ACMEX"  # type: ignore[union-attr]
        with get_connection(seeded_db) as conn:
            row = conn.execute(
                "SELECT slug, slug_key, slug_number FROM projects WHERE id = ?", (project_id,)
            ).fetchone()
        assert row == {"slug": "ACMEX-P-7", "slug_key": "ACMEX", "slug_number": 7}

    def test_rename_to_taken_key(self, registry: KeyRegistry) -> None:
        _insert(registry, "ACME")
        _insert(registry, "SQUI", Scope(organization_id="org_squirrels"))

        with pytest.raises(KeyConflictError):
            registry.rename("ACME", "SQUI")

    def test_rename_unknown_key(self, registry: KeyRegistry) -> None:
        with pytest.raises(KeyNotFoundError) as exc_info:
            registry.rename("NOPE", "ACME")
        assert isinstance(exc_info.value, KeyEngineError)
        assert exc_info.value.key == "NOPE"


class TestDeleteAll:
    """Tests for KeyRegistry.delete_all."""

    def test_delete_all(self, registry: KeyRegistry) -> None:
        _insert(registry, "ACME")
        _insert(registry, "SQUI", Scope(organization_id="org_squirrels"))

        with registry.connect() as conn:
            assert registry.delete_all(conn) == 2
            conn.commit()

        assert registry.list_keys() == []
