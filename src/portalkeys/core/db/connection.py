"""
Database connection management for the portalkeys store.

Every public engine operation opens its own short-lived connection and
commits its own transaction. Connections are configured with:
- WAL mode so readers don't block the single writer
- Foreign key enforcement
- A busy timeout so concurrent writers wait instead of failing at once
- Row factory for dict-like access

Usage:
    from portalkeys.core.db import get_connection, init_db

    db_path = Path(".portalkeys/keys.db")
    init_db(db_path).close()

    with get_connection(db_path) as conn:
        row = conn.execute("SELECT * FROM key_registry WHERE key = ?", ("ACME",)).fetchone()
        print(row["last_task_number"])
"""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from portalkeys.core.db.schema import create_schema, needs_migration

DEFAULT_BUSY_TIMEOUT = 5.0


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """
    Row factory that returns rows as dictionaries.

    Enables row["column_name"] access instead of row[0].
    """
    fields = [column[0] for column in cursor.description]
    return dict(zip(fields, row))


def configure_connection(conn: sqlite3.Connection) -> None:
    """
    Configure a SQLite connection with the settings the engine relies on.

    Args:
        conn: SQLite connection to configure
    """
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = dict_factory


def _connect(db_path: Path, timeout: float) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path), timeout=timeout)
    configure_connection(conn)
    return conn


def init_db(
    db_path: Path | str,
    *,
    force_recreate: bool = False,
    timeout: float = DEFAULT_BUSY_TIMEOUT,
) -> sqlite3.Connection:
    """
    Initialize the store.

    Creates the database file if it doesn't exist, applies the schema,
    and returns a configured connection.

    Args:
        db_path: Path to the SQLite database file
        force_recreate: If True, delete existing database and recreate
        timeout: Seconds to wait on a locked database

    Returns:
        Configured SQLite connection

    Example:
        >>> import tempfile
        >>> with tempfile.TemporaryDirectory() as tmpdir:
        ...     conn = init_db(Path(tmpdir) / "keys.db")
        ...     conn.close()
    """
    db_path = Path(db_path)

    if force_recreate and db_path.exists():
        db_path.unlink()

    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = _connect(db_path, timeout)

    if needs_migration(conn):
        create_schema(conn)

    return conn


@contextmanager
def get_connection(
    db_path: Path | str, *, timeout: float = DEFAULT_BUSY_TIMEOUT
) -> Iterator[sqlite3.Connection]:
    """
    Get a database connection as a context manager.

    The connection is closed when the context exits. If an exception
    escapes, the open transaction is rolled back first.

    Args:
        db_path: Path to the SQLite database file
        timeout: Seconds to wait on a locked database

    Yields:
        Configured SQLite connection
    """
    db_path = Path(db_path)

    if not db_path.exists():
        init_db(db_path, timeout=timeout).close()

    conn = _connect(db_path, timeout)

    try:
        yield conn
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def execute_query(
    conn: sqlite3.Connection,
    query: str,
    params: tuple[Any, ...] | dict[str, Any] | None = None,
) -> list[dict[str, Any]]:
    """Execute a query and return all results as a list of dicts."""
    if params is None:
        params = ()

    cursor = conn.execute(query, params)
    return cursor.fetchall()


def execute_one(
    conn: sqlite3.Connection,
    query: str,
    params: tuple[Any, ...] | dict[str, Any] | None = None,
) -> dict[str, Any] | None:
    """
    Execute a query and return the first result as a dict.

    Returns:
        First row as dictionary, or None if no results
    """
    if params is None:
        params = ()

    cursor = conn.execute(query, params)
    result = cursor.fetchone()
    # fetchone() returns dict[str, Any] or None when dict_factory is configured
    return result  # type: ignore[no-any-return]
