"""
Minimal entity access for the slugged tables.

The portal's CRUD layer owns organizations, sub-units, projects, sprints,
and tasks. The engine only needs to read them, write slug columns, and (in
tests and administrative tooling) insert rows. Those helpers live here so
that no other module writes SQL against the entity tables directly.
"""

import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any

from portalkeys.core.db.connection import execute_one, execute_query
from portalkeys.core.db.schema import ENTITY_TABLES, validate_entity_kind


def now_iso() -> str:
    """Current UTC time as a fixed-precision ISO-8601 string (sorts lexically)."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def insert_organization(
    conn: sqlite3.Connection,
    name: str,
    *,
    organization_id: str | None = None,
    created_at: str | None = None,
) -> str:
    """Insert an organization and return its id."""
    organization_id = organization_id or _new_id("org")
    conn.execute(
        "INSERT INTO organizations (id, name, created_at) VALUES (?, ?, ?)",
        (organization_id, name, created_at or now_iso()),
    )
    return organization_id


def insert_sub_unit(
    conn: sqlite3.Connection,
    organization_id: str,
    name: str,
    *,
    sub_unit_id: str | None = None,
    created_at: str | None = None,
) -> str:
    """Insert a sub-unit (department) under an organization and return its id."""
    sub_unit_id = sub_unit_id or _new_id("dept")
    conn.execute(
        "INSERT INTO sub_units (id, organization_id, name, created_at) VALUES (?, ?, ?, ?)",
        (sub_unit_id, organization_id, name, created_at or now_iso()),
    )
    return sub_unit_id


def insert_project(
    conn: sqlite3.Connection,
    organization_id: str,
    title: str,
    *,
    sub_unit_id: str | None = None,
    project_id: str | None = None,
    created_at: str | None = None,
) -> str:
    """Insert an unslugged project and return its id."""
    project_id = project_id or _new_id("proj")
    ts = created_at or now_iso()
    conn.execute(
        """
        INSERT INTO projects (id, organization_id, sub_unit_id, title, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (project_id, organization_id, sub_unit_id, title, ts, ts),
    )
    return project_id


def insert_sprint(
    conn: sqlite3.Connection,
    organization_id: str,
    name: str,
    *,
    sub_unit_id: str | None = None,
    project_id: str | None = None,
    sprint_id: str | None = None,
    created_at: str | None = None,
) -> str:
    """Insert an unslugged sprint and return its id."""
    sprint_id = sprint_id or _new_id("sprint")
    ts = created_at or now_iso()
    conn.execute(
        """
        INSERT INTO sprints (id, organization_id, sub_unit_id, project_id, name,
                             created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (sprint_id, organization_id, sub_unit_id, project_id, name, ts, ts),
    )
    return sprint_id


def insert_task(
    conn: sqlite3.Connection,
    title: str,
    *,
    project_id: str | None = None,
    task_id: str | None = None,
    created_at: str | None = None,
) -> str:
    """Insert an unslugged task and return its id."""
    task_id = task_id or _new_id("task")
    ts = created_at or now_iso()
    conn.execute(
        """
        INSERT INTO tasks (id, project_id, title, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?)
        """,
        (task_id, project_id, title, ts, ts),
    )
    return task_id


def get_organization(conn: sqlite3.Connection, organization_id: str) -> dict[str, Any] | None:
    return execute_one(conn, "SELECT * FROM organizations WHERE id = ?", (organization_id,))


def get_sub_unit(conn: sqlite3.Connection, sub_unit_id: str) -> dict[str, Any] | None:
    return execute_one(conn, "SELECT * FROM sub_units WHERE id = ?", (sub_unit_id,))


def list_organizations(conn: sqlite3.Connection) -> list[dict[str, Any]]:
    return execute_query(conn, "SELECT * FROM organizations ORDER BY created_at, id")


def list_sub_units(conn: sqlite3.Connection, organization_id: str) -> list[dict[str, Any]]:
    return execute_query(
        conn,
        "SELECT * FROM sub_units WHERE organization_id = ? ORDER BY created_at, id",
        (organization_id,),
    )


def get_entity(conn: sqlite3.Connection, kind: str, entity_id: str) -> dict[str, Any] | None:
    """Fetch a task, sprint, or project row by id."""
    validate_entity_kind(kind)
    table = ENTITY_TABLES[kind]
    return execute_one(conn, f"SELECT * FROM {table} WHERE id = ?", (entity_id,))


def find_by_slug(conn: sqlite3.Connection, kind: str, slug: str) -> dict[str, Any] | None:
    """Fetch the entity of the given kind carrying exactly this slug."""
    validate_entity_kind(kind)
    table = ENTITY_TABLES[kind]
    return execute_one(conn, f"SELECT * FROM {table} WHERE slug = ?", (slug,))


def list_entities(conn: sqlite3.Connection, kind: str) -> list[dict[str, Any]]:
    """
    List all entities of a kind in creation order.

    Tasks are grouped per project (projects in creation order), preserving
    creation order within each project so re-slugging keeps historical
    numbering. Tasks without a project come first.
    """
    validate_entity_kind(kind)
    table = ENTITY_TABLES[kind]
    if kind == "task":
        return execute_query(
            conn,
            """
            SELECT t.* FROM tasks t
            LEFT JOIN projects p ON p.id = t.project_id
            ORDER BY p.created_at, t.project_id, t.created_at, t.id
            """,
        )
    return execute_query(conn, f"SELECT * FROM {table} ORDER BY created_at, id")


def write_slug(
    conn: sqlite3.Connection,
    kind: str,
    entity_id: str,
    slug: str,
    key: str,
    number: int,
) -> bool:
    """
    Set the slug on an entity that has none yet.

    Returns:
        True if the slug was written, False if the entity already had one
        (written by a concurrent caller) or does not exist.

    Raises:
        sqlite3.IntegrityError: If another entity of the same kind already
            carries this slug.
    """
    validate_entity_kind(kind)
    table = ENTITY_TABLES[kind]
    cursor = conn.execute(
        f"""
        UPDATE {table}
        SET slug = ?, slug_key = ?, slug_number = ?, updated_at = ?
        WHERE id = ? AND slug IS NULL
        """,
        (slug, key, number, now_iso(), entity_id),
    )
    return cursor.rowcount == 1


def clear_slugs(conn: sqlite3.Connection, kind: str) -> int:
    """Clear every slug of a kind. Returns the number of rows cleared."""
    validate_entity_kind(kind)
    table = ENTITY_TABLES[kind]
    cursor = conn.execute(
        f"""
        UPDATE {table}
        SET slug = NULL, slug_key = NULL, slug_number = NULL, updated_at = ?
        WHERE slug IS NOT NULL
        """,
        (now_iso(),),
    )
    return cursor.rowcount


def rekey_slugs(conn: sqlite3.Connection, kind: str, old_key: str, new_key: str) -> int:
    """
    Rewrite slugs built on old_key to use new_key, keeping their numbers.

    Returns:
        Number of rows rewritten
    """
    from portalkeys.core.slugs.models import format_slug

    validate_entity_kind(kind)
    table = ENTITY_TABLES[kind]
    rows = execute_query(
        conn,
        f"SELECT id, slug_number FROM {table} WHERE slug_key = ? AND slug_number IS NOT NULL",
        (old_key,),
    )
    ts = now_iso()
    for row in rows:
        conn.execute(
            f"UPDATE {table} SET slug = ?, slug_key = ?, updated_at = ? WHERE id = ?",
            (format_slug(new_key, kind, row["slug_number"]), new_key, ts, row["id"]),
        )
    return len(rows)
