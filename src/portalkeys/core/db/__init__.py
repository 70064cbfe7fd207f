"""
SQLite store for the key registry and slugged entities.

Public API:
    - init_db: Create/migrate the database and return a connection
    - get_connection: Context-managed connection for one operation
    - execute_query / execute_one: Query helpers returning dict rows
"""

from portalkeys.core.db.connection import (
    configure_connection,
    dict_factory,
    execute_one,
    execute_query,
    get_connection,
    init_db,
)
from portalkeys.core.db.schema import (
    COUNTER_COLUMNS,
    ENTITY_TABLES,
    SCHEMA_VERSION,
    create_schema,
    get_schema_version,
    needs_migration,
)

__all__ = [
    "COUNTER_COLUMNS",
    "ENTITY_TABLES",
    "SCHEMA_VERSION",
    "configure_connection",
    "create_schema",
    "dict_factory",
    "execute_one",
    "execute_query",
    "get_connection",
    "get_schema_version",
    "init_db",
    "needs_migration",
]
