"""SQLite table journal.

Records executed scripts in a table, one row per script:

    id           INTEGER PRIMARY KEY AUTOINCREMENT
    script_name  TEXT NOT NULL
    applied      TEXT NOT NULL   -- ISO-8601 UTC timestamp

Rows are read back in ``id`` order, which is the order scripts were applied.
"""

import logging
import re
import sqlite3
from datetime import datetime, timezone
from typing import Any

from ..engine.base import ConfigurationError, Script
from .connection import SqliteConnectionManager

logger = logging.getLogger(__name__)

TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class SqliteTableJournal:
    """Journal backed by a table in the target database."""

    def __init__(
        self,
        connection_manager: SqliteConnectionManager,
        table_name: str = "schema_versions",
    ):
        """Initialize the journal.

        Args:
            connection_manager: Connection manager of the target database
            table_name: Journal table name (a plain SQL identifier)

        Raises:
            ConfigurationError: If the table name is not a valid identifier
        """
        if not TABLE_NAME_PATTERN.match(table_name or ""):
            raise ConfigurationError(f"Invalid journal table name: {table_name!r}")
        self.connection_manager = connection_manager
        self.table_name = table_name

    def _create_table(self, connection: sqlite3.Connection) -> None:
        connection.execute(
            f"CREATE TABLE IF NOT EXISTS {self.table_name} ("
            "id INTEGER PRIMARY KEY AUTOINCREMENT, "
            "script_name TEXT NOT NULL, "
            "applied TEXT NOT NULL)"
        )

    def _table_exists(self, connection: sqlite3.Connection) -> bool:
        row = connection.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
            (self.table_name,),
        ).fetchone()
        return row is not None

    def ensure_table_exists(self) -> None:
        """Create the journal table if it is missing."""
        self.connection_manager.execute_with_managed_connection(self._create_table)

    def get_executed_scripts(self) -> list[str]:
        """Return executed script names in the order they were applied."""

        def read(connection: sqlite3.Connection) -> list[str]:
            if not self._table_exists(connection):
                logger.debug(f"Journal table {self.table_name} does not exist yet")
                return []
            rows = connection.execute(
                f"SELECT script_name FROM {self.table_name} ORDER BY id"
            ).fetchall()
            return [row[0] for row in rows]

        return self.connection_manager.execute_with_managed_connection(read)

    def get_applied_at(self) -> dict[str, str]:
        """Map each executed script name to its latest applied timestamp."""

        def read(connection: sqlite3.Connection) -> dict[str, str]:
            if not self._table_exists(connection):
                return {}
            rows = connection.execute(
                f"SELECT script_name, applied FROM {self.table_name} ORDER BY id"
            ).fetchall()
            return {name: applied for name, applied in rows}

        return self.connection_manager.execute_with_managed_connection(read)

    def store_executed_script(self, script: Script, connection: Any) -> None:
        """Record ``script`` as executed using the caller's connection."""
        self._create_table(connection)
        connection.execute(
            f"INSERT INTO {self.table_name} (script_name, applied) VALUES (?, ?)",
            (script.name, datetime.now(timezone.utc).isoformat()),
        )

    def remove_executed_script(self, script: Script) -> None:
        """Delete every journal row for ``script``."""

        def delete(connection: sqlite3.Connection) -> None:
            if self._table_exists(connection):
                connection.execute(
                    f"DELETE FROM {self.table_name} WHERE script_name = ?",
                    (script.name,),
                )

        self.connection_manager.execute_with_managed_connection(delete)
