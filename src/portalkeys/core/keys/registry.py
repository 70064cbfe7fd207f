"""
Key registry: durable storage of keys, scopes, and slug counters.

KeyRegistry owns every SQL statement that touches the key_registry table.
Counters change through exactly one path, try_increment(), a conditional
write that only succeeds if the counter still holds the value the caller
read. No lock is held between that read and the write.

Methods taking a `conn` argument run inside the caller's transaction; the
caller commits. Methods without one open and commit their own.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import AbstractContextManager
from pathlib import Path

from portalkeys.core.db.connection import execute_one, execute_query, get_connection
from portalkeys.core.db.entities import now_iso, rekey_slugs
from portalkeys.core.db.schema import COUNTER_COLUMNS, ENTITY_TABLES
from portalkeys.core.errors import KeyConflictError, KeyNotFoundError
from portalkeys.core.keys.models import KeyRegistryEntry, Scope

logger = logging.getLogger(__name__)


def _scope_params(scope: Scope) -> tuple[str, str]:
    return (scope.organization_id, scope.sub_unit_id or "")


class KeyRegistry:
    """
    Access to the key_registry table.

    Example:
        >>> registry = KeyRegistry(Path(".portalkeys/keys.db"))
        >>> entry = registry.get_by_key("ACME")
        >>> entry.last_task_number if entry else None
    """

    def __init__(self, db_path: Path | str, *, timeout: float = 5.0) -> None:
        self.db_path = Path(db_path)
        self.timeout = timeout

    def connect(self) -> AbstractContextManager[sqlite3.Connection]:
        """Open a connection to the registry's database (context manager)."""
        return get_connection(self.db_path, timeout=self.timeout)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, key_id: int, conn: sqlite3.Connection | None = None) -> KeyRegistryEntry | None:
        """Fetch a registry row by id."""
        if conn is None:
            with self.connect() as own:
                return self.get(key_id, own)
        row = execute_one(conn, "SELECT * FROM key_registry WHERE id = ?", (key_id,))
        return KeyRegistryEntry.from_row(row) if row else None

    def get_by_key(
        self, key: str, conn: sqlite3.Connection | None = None
    ) -> KeyRegistryEntry | None:
        """Fetch a registry row by its exact key string."""
        if conn is None:
            with self.connect() as own:
                return self.get_by_key(key, own)
        row = execute_one(conn, "SELECT * FROM key_registry WHERE key = ?", (key,))
        return KeyRegistryEntry.from_row(row) if row else None

    def key_exists(self, conn: sqlite3.Connection, key: str) -> bool:
        row = execute_one(conn, "SELECT 1 AS found FROM key_registry WHERE key = ?", (key,))
        return row is not None

    def find_for_scope(
        self, scope: Scope, conn: sqlite3.Connection | None = None
    ) -> KeyRegistryEntry | None:
        """
        Find the active row a scope should mint slugs from.

        The scope's default row wins; otherwise the oldest active row.
        """
        if conn is None:
            with self.connect() as own:
                return self.find_for_scope(scope, own)
        row = execute_one(
            conn,
            """
            SELECT * FROM key_registry
            WHERE organization_id = ? AND IFNULL(sub_unit_id, '') = ? AND is_active = 1
            ORDER BY is_default DESC, id ASC
            LIMIT 1
            """,
            _scope_params(scope),
        )
        return KeyRegistryEntry.from_row(row) if row else None

    def list_keys(
        self,
        *,
        organization_id: str | None = None,
        sub_unit_id: str | None = None,
        is_active: bool | None = None,
    ) -> list[KeyRegistryEntry]:
        """List registry rows, optionally filtered, sorted by key."""
        clauses: list[str] = []
        params: list[object] = []
        if organization_id is not None:
            clauses.append("organization_id = ?")
            params.append(organization_id)
        if sub_unit_id is not None:
            clauses.append("sub_unit_id = ?")
            params.append(sub_unit_id)
        if is_active is not None:
            clauses.append("is_active = ?")
            params.append(int(is_active))

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self.connect() as conn:
            rows = execute_query(
                conn, f"SELECT * FROM key_registry {where} ORDER BY key", tuple(params)
            )
        return [KeyRegistryEntry.from_row(row) for row in rows]

    def read_counter(self, conn: sqlite3.Connection, entry_id: int, kind: str) -> int | None:
        """Read the current counter for a kind, or None if the row vanished."""
        column = COUNTER_COLUMNS[kind]
        row = execute_one(
            conn, f"SELECT {column} AS value FROM key_registry WHERE id = ?", (entry_id,)
        )
        return None if row is None else int(row["value"])

    # ------------------------------------------------------------------
    # Sanctioned writes
    # ------------------------------------------------------------------

    def insert(
        self,
        conn: sqlite3.Connection,
        key: str,
        scope: Scope,
        *,
        description: str | None = None,
        is_default: bool = False,
        created_by: str | None = None,
    ) -> int:
        """
        Insert a new row with zeroed counters.

        If is_default is set, any other default for the same scope is demoted
        in the same transaction.

        Returns:
            The new row id

        Raises:
            sqlite3.IntegrityError: If the key is already registered
        """
        ts = now_iso()
        if is_default:
            self._demote_defaults(conn, scope, ts)

        cursor = conn.execute(
            """
            INSERT INTO key_registry (
                key, description, organization_id, sub_unit_id, is_default, is_active,
                last_task_number, last_sprint_number, last_project_number,
                created_by, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, 1, 0, 0, 0, ?, ?, ?)
            """,
            (
                key,
                description,
                scope.organization_id,
                scope.sub_unit_id,
                int(is_default),
                created_by,
                ts,
                ts,
            ),
        )
        logger.debug("Inserted key %s for scope %s (default=%s)", key, scope, is_default)
        return int(cursor.lastrowid or 0)

    def try_increment(
        self, conn: sqlite3.Connection, entry_id: int, kind: str, expected: int
    ) -> bool:
        """
        Conditionally bump a counter from `expected` to `expected + 1`.

        Returns:
            True if this caller won; False if the counter moved since it was
            read (another assignment won the race) or the row is gone.
        """
        column = COUNTER_COLUMNS[kind]
        cursor = conn.execute(
            f"""
            UPDATE key_registry
            SET {column} = ?, updated_at = ?
            WHERE id = ? AND {column} = ?
            """,
            (expected + 1, now_iso(), entry_id, expected),
        )
        return cursor.rowcount == 1

    def update(
        self,
        key_id: int,
        *,
        description: str | None = None,
        is_default: bool | None = None,
        is_active: bool | None = None,
    ) -> KeyRegistryEntry | None:
        """
        Update a row's description or flags, keeping one default per scope.

        Returns:
            The updated entry, or None if no row has this id
        """
        with self.connect() as conn:
            entry = self.get(key_id, conn)
            if entry is None:
                return None

            ts = now_iso()
            if is_default:
                self._demote_defaults(conn, entry.scope, ts, exclude_id=key_id)

            assignments = ["updated_at = ?"]
            params: list[object] = [ts]
            if description is not None:
                assignments.append("description = ?")
                params.append(description)
            if is_default is not None:
                assignments.append("is_default = ?")
                params.append(int(is_default))
            if is_active is not None:
                assignments.append("is_active = ?")
                params.append(int(is_active))
            params.append(key_id)

            conn.execute(
                f"UPDATE key_registry SET {', '.join(assignments)} WHERE id = ?",
                tuple(params),
            )
            conn.commit()
            return self.get(key_id, conn)

    def rename(self, old_key: str, new_key: str) -> dict[str, int]:
        """
        Re-key a registry row and rewrite every slug built on it.

        Slug numbers are kept; only the key part changes. Runs as one
        transaction.

        Returns:
            Count of rewritten slugs per entity kind

        Raises:
            KeyNotFoundError: If old_key is not registered
            KeyConflictError: If new_key is already registered
        """
        with self.connect() as conn:
            entry = self.get_by_key(old_key, conn)
            if entry is None:
                raise KeyNotFoundError(old_key)
            if self.key_exists(conn, new_key):
                raise KeyConflictError(new_key)

            conn.execute(
                "UPDATE key_registry SET key = ?, updated_at = ? WHERE id = ?",
                (new_key, now_iso(), entry.id),
            )
            rewritten = {kind: rekey_slugs(conn, kind, old_key, new_key) for kind in ENTITY_TABLES}
            conn.commit()

        logger.info("Renamed key %s -> %s (%s)", old_key, new_key, rewritten)
        return rewritten

    def delete_all(self, conn: sqlite3.Connection) -> int:
        """Delete every registry row. Bulk migration only."""
        cursor = conn.execute("DELETE FROM key_registry")
        return cursor.rowcount

    def _demote_defaults(
        self, conn: sqlite3.Connection, scope: Scope, ts: str, exclude_id: int | None = None
    ) -> None:
        conn.execute(
            """
            UPDATE key_registry
            SET is_default = 0, updated_at = ?
            WHERE organization_id = ? AND IFNULL(sub_unit_id, '') = ?
              AND is_default = 1 AND id != ?
            """,
            (ts, *_scope_params(scope), exclude_id if exclude_id is not None else -1),
        )
