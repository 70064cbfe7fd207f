"""
Pytest configuration and shared fixtures.

Provides a temporary SQLite store, seeded organizations/sub-units, engine
components wired against that store, and helpers for inserting entities.
"""

import sqlite3
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from portalkeys.core.config import clear_cache
from portalkeys.core.config.models import KeysConfig, PortalKeysConfig, SequenceConfig
from portalkeys.core.db import get_connection, init_db
from portalkeys.core.db.entities import (
    insert_organization,
    insert_project,
    insert_sprint,
    insert_sub_unit,
    insert_task,
)
from portalkeys.core.engine import KeyEngine
from portalkeys.core.keys.registry import KeyRegistry
from portalkeys.core.keys.service import KeyService
from portalkeys.core.slugs.assigner import SequenceAssigner

# ==============================================================================
# Environment Fixtures
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep user config, env vars, and the config cache out of every test."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for var in (
        "PORTALKEYS_DB",
        "PORTALKEYS_SCOPING",
        "PORTALKEYS_MAX_RETRIES",
        "PORTALKEYS_EMPTY_NAME_POLICY",
    ):
        monkeypatch.delenv(var, raising=False)
    clear_cache()
    yield
    clear_cache()


# ==============================================================================
# Store Fixtures
# ==============================================================================


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Provide an initialized, empty store."""
    path = tmp_path / "keys.db"
    init_db(path).close()
    return path


@pytest.fixture
def conn(db_path: Path) -> Iterator[sqlite3.Connection]:
    """Provide an open connection to the store."""
    with get_connection(db_path) as connection:
        yield connection


@pytest.fixture
def seeded_db(db_path: Path) -> Path:
    """
    Store with organizations and sub-units.

    Creates:
    - org_acme "Acme" with sub-units dept_mkt "Marketing" and dept_web "Web Team"
    - org_squirrels "Squirrels"
    - org_design "Design Team"
    """
    with get_connection(db_path) as connection:
        insert_organization(connection, "Acme", organization_id="org_acme")
        insert_sub_unit(connection, "org_acme", "Marketing", sub_unit_id="dept_mkt")
        insert_sub_unit(connection, "org_acme", "Web Team", sub_unit_id="dept_web")
        insert_organization(connection, "Squirrels", organization_id="org_squirrels")
        insert_organization(connection, "Design Team", organization_id="org_design")
        connection.commit()
    return db_path


# ==============================================================================
# Component Fixtures
# ==============================================================================


@pytest.fixture
def fast_sequence() -> SequenceConfig:
    """Sequence config with no retry delay."""
    return SequenceConfig(max_retries=8, retry_delay_ms=0, retry_backoff=1.0)


@pytest.fixture
def registry(seeded_db: Path) -> KeyRegistry:
    return KeyRegistry(seeded_db)


@pytest.fixture
def key_service(registry: KeyRegistry) -> KeyService:
    return KeyService(registry, KeysConfig())


@pytest.fixture
def assigner(
    registry: KeyRegistry, key_service: KeyService, fast_sequence: SequenceConfig
) -> SequenceAssigner:
    return SequenceAssigner(registry, key_service, fast_sequence)


@pytest.fixture
def engine(seeded_db: Path, fast_sequence: SequenceConfig) -> KeyEngine:
    return KeyEngine(seeded_db, PortalKeysConfig(sequence=fast_sequence))


# ==============================================================================
# Entity Helpers
# ==============================================================================


@pytest.fixture
def make_project(seeded_db: Path) -> Callable[..., str]:
    """Insert a project and return its id."""

    def _make(organization_id: str = "org_acme", title: str = "Project", **kwargs: object) -> str:
        with get_connection(seeded_db) as connection:
            project_id = insert_project(connection, organization_id, title, **kwargs)  # type: ignore[arg-type]
            connection.commit()
        return project_id

    return _make


@pytest.fixture
def make_sprint(seeded_db: Path) -> Callable[..., str]:
    """Insert a sprint and return its id."""

    def _make(organization_id: str = "org_acme", name: str = "Sprint", **kwargs: object) -> str:
        with get_connection(seeded_db) as connection:
            sprint_id = insert_sprint(connection, organization_id, name, **kwargs)  # type: ignore[arg-type]
            connection.commit()
        return sprint_id

    return _make


@pytest.fixture
def make_task(seeded_db: Path) -> Callable[..., str]:
    """Insert a task and return its id."""

    def _make(project_id: str | None, title: str = "Task", **kwargs: object) -> str:
        with get_connection(seeded_db) as connection:
            task_id = insert_task(connection, title, project_id=project_id, **kwargs)  # type: ignore[arg-type]
            connection.commit()
        return task_id

    return _make
