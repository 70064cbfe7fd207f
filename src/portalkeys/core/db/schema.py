"""
SQLite schema for the portalkeys store.

Schema Design:
- key_registry: one row per registered key, scoped to an organization and
  optionally a sub-unit, carrying one counter per entity kind
- organizations, sub_units: the scopes keys are minted for
- projects, sprints, tasks: the slugged entities (minimal columns; the
  CRUD layer that owns them lives outside this package)
- schema_info: version tracking for migrations

Invariants enforced by the schema:
- key_registry.key is unique across the whole registry
- at most one default key per scope (partial unique index)
- slug is unique within each entity table
"""

import sqlite3

# Schema version for migrations
SCHEMA_VERSION = 1

# Entity kinds that carry slugs, mapped to their table names
ENTITY_TABLES = {
    "task": "tasks",
    "sprint": "sprints",
    "project": "projects",
}

# Counter column per entity kind in key_registry
COUNTER_COLUMNS = {
    "task": "last_task_number",
    "sprint": "last_sprint_number",
    "project": "last_project_number",
}


SCHEMA_DDL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_info (
    version INTEGER PRIMARY KEY,
    applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    description TEXT
);

CREATE TABLE IF NOT EXISTS organizations (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sub_units (
    id TEXT PRIMARY KEY,
    organization_id TEXT NOT NULL,
    name TEXT NOT NULL,
    created_at TEXT NOT NULL,

    FOREIGN KEY (organization_id) REFERENCES organizations(id) ON DELETE CASCADE
);

-- Key registry: the only home of slug counters
CREATE TABLE IF NOT EXISTS key_registry (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    key TEXT NOT NULL UNIQUE,
    description TEXT,

    -- Scope
    organization_id TEXT NOT NULL,
    sub_unit_id TEXT,

    -- Configuration
    is_default INTEGER NOT NULL DEFAULT 0 CHECK(is_default IN (0, 1)),
    is_active INTEGER NOT NULL DEFAULT 1 CHECK(is_active IN (0, 1)),

    -- Counters (last number handed out per entity kind)
    last_task_number INTEGER NOT NULL DEFAULT 0 CHECK(last_task_number >= 0),
    last_sprint_number INTEGER NOT NULL DEFAULT 0 CHECK(last_sprint_number >= 0),
    last_project_number INTEGER NOT NULL DEFAULT 0 CHECK(last_project_number >= 0),

    -- Audit
    created_by TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,

    FOREIGN KEY (organization_id) REFERENCES organizations(id),
    FOREIGN KEY (sub_unit_id) REFERENCES sub_units(id)
);

CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    organization_id TEXT NOT NULL,
    sub_unit_id TEXT,
    title TEXT NOT NULL,
    slug TEXT UNIQUE,
    slug_key TEXT,
    slug_number INTEGER,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,

    FOREIGN KEY (organization_id) REFERENCES organizations(id),
    FOREIGN KEY (sub_unit_id) REFERENCES sub_units(id)
);

CREATE TABLE IF NOT EXISTS sprints (
    id TEXT PRIMARY KEY,
    organization_id TEXT NOT NULL,
    sub_unit_id TEXT,
    project_id TEXT,
    name TEXT NOT NULL,
    slug TEXT UNIQUE,
    slug_key TEXT,
    slug_number INTEGER,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,

    FOREIGN KEY (organization_id) REFERENCES organizations(id),
    FOREIGN KEY (sub_unit_id) REFERENCES sub_units(id),
    FOREIGN KEY (project_id) REFERENCES projects(id)
);

CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    project_id TEXT,
    title TEXT NOT NULL,
    slug TEXT UNIQUE,
    slug_key TEXT,
    slug_number INTEGER,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,

    FOREIGN KEY (project_id) REFERENCES projects(id)
);

-- One default key per scope
CREATE UNIQUE INDEX IF NOT EXISTS idx_key_registry_default_scope
    ON key_registry(organization_id, IFNULL(sub_unit_id, ''))
    WHERE is_default = 1;

CREATE INDEX IF NOT EXISTS idx_key_registry_scope
    ON key_registry(organization_id, sub_unit_id);

CREATE INDEX IF NOT EXISTS idx_sub_units_org ON sub_units(organization_id);
CREATE INDEX IF NOT EXISTS idx_projects_org ON projects(organization_id, sub_unit_id);
CREATE INDEX IF NOT EXISTS idx_projects_slug_key ON projects(slug_key, slug_number);
CREATE INDEX IF NOT EXISTS idx_sprints_org ON sprints(organization_id, sub_unit_id);
CREATE INDEX IF NOT EXISTS idx_sprints_slug_key ON sprints(slug_key, slug_number);
CREATE INDEX IF NOT EXISTS idx_tasks_project ON tasks(project_id, created_at);
CREATE INDEX IF NOT EXISTS idx_tasks_slug_key ON tasks(slug_key, slug_number);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """
    Create the database schema.

    Executes all DDL statements to create tables and indexes.
    This is idempotent - safe to call multiple times.

    Args:
        conn: SQLite database connection

    Example:
        >>> import sqlite3
        >>> conn = sqlite3.connect(":memory:")
        >>> create_schema(conn)
        >>> cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        >>> tables = [row[0] for row in cursor.fetchall()]
        >>> assert "key_registry" in tables
    """
    conn.executescript(SCHEMA_DDL)

    conn.execute(
        """
        INSERT OR REPLACE INTO schema_info (version, description)
        VALUES (?, ?)
        """,
        (SCHEMA_VERSION, "Key registry, scopes, and slugged entities"),
    )

    conn.commit()


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    """
    Get the current schema version from the database.

    Returns:
        Current schema version, or None if schema_info table doesn't exist
    """
    try:
        cursor = conn.execute("SELECT MAX(version) AS version FROM schema_info")
        row = cursor.fetchone()
    except sqlite3.OperationalError:
        # schema_info table doesn't exist
        return None
    if row is None:
        return None
    value = row["version"] if isinstance(row, dict) else row[0]
    return value if value is not None else None


def needs_migration(conn: sqlite3.Connection) -> bool:
    """
    Check if database needs migration to current schema version.

    Example:
        >>> import sqlite3
        >>> conn = sqlite3.connect(":memory:")
        >>> assert needs_migration(conn) is True  # No schema yet
        >>> create_schema(conn)
        >>> assert needs_migration(conn) is False  # Up to date
    """
    current_version = get_schema_version(conn)
    if current_version is None:
        return True
    return current_version < SCHEMA_VERSION


def validate_entity_kind(kind: str) -> None:
    """
    Validate that an entity kind is one of the slugged kinds.

    Raises:
        ValueError: If kind is invalid

    Example:
        >>> validate_entity_kind("task")  # OK
        >>> validate_entity_kind("epic")
        Traceback (most recent call last):
        ...
        ValueError: Invalid entity kind: epic. Must be one of: task, sprint, project
    """
    if kind not in ENTITY_TABLES:
        raise ValueError(
            f"Invalid entity kind: {kind}. Must be one of: {', '.join(ENTITY_TABLES)}"
        )
