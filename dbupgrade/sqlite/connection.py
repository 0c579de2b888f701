"""SQLite connection management.

One connection is opened per outermost operation and shared by every
collaborator call made inside it. The operation guard is a re-entrant
lock, so nested operations on the same thread (e.g. a listener querying
the engine) reuse the open connection instead of deadlocking.

Managed calls nest: an action run inside another managed action joins the
outer transaction, so a script and its journal row commit or roll back
together.
"""

import logging
import sqlite3
import threading
from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, TypeVar

from ..engine.base import Script
from ..engine.protocols import UpgradeLog

logger = logging.getLogger(__name__)

T = TypeVar("T")

MEMORY_DATABASE = ":memory:"


class SqliteConnectionManager:
    """Connection manager for a SQLite database file.

    In-memory databases keep a single connection open until ``close()``,
    since closing it would discard the database.
    """

    def __init__(self, database: str | Path, timeout: float = 5.0):
        """Initialize the connection manager.

        Args:
            database: Database file path or ":memory:"
            timeout: Seconds to wait when the database is locked
        """
        self.database = str(database)
        self.timeout = timeout
        self._lock = threading.RLock()
        self._connection: Optional[sqlite3.Connection] = None
        self._managed: Optional[sqlite3.Connection] = None
        self._depth = 0

    @property
    def is_memory(self) -> bool:
        return self.database == MEMORY_DATABASE

    @property
    def in_operation(self) -> bool:
        return self._depth > 0

    def _open(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self.database, timeout=self.timeout)
        logger.debug(f"Opened SQLite connection to {self.database}")
        return connection

    def _open_existing(self) -> sqlite3.Connection:
        """Open the database read-write without creating a missing file."""
        if self.is_memory:
            return self._open()
        uri = f"{Path(self.database).absolute().as_uri()}?mode=rw"
        return sqlite3.connect(uri, timeout=self.timeout, uri=True)

    def try_connect(self, log: UpgradeLog) -> tuple[bool, str]:
        """Check that an existing database can be opened and queried.

        A missing database file is reported as a failure and is not created.

        Returns:
            Tuple of (connected, error_message)
        """
        try:
            with self._lock:
                if self._connection is not None:
                    self._connection.execute("SELECT 1").fetchone()
                    return True, ""

            connection = self._open_existing()
            try:
                connection.execute("SELECT 1").fetchone()
            finally:
                connection.close()
            return True, ""
        except sqlite3.Error as e:
            log.error(f"Could not connect to {self.database}: {e}")
            return False, str(e)

    @contextmanager
    def operation_starting(
        self, log: UpgradeLog, executed_scripts: list[Script]
    ) -> Generator["SqliteConnectionManager", None, None]:
        """Hold the operation guard and a shared connection for one operation.

        Args:
            log: Upgrade log
            executed_scripts: Accumulator of the operation (unused here)

        Yields:
            This connection manager
        """
        with self._lock:
            outermost = self._depth == 0
            if self._connection is None:
                self._connection = self._open()
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
                if outermost and not self.is_memory:
                    self._connection.close()
                    self._connection = None
                    logger.debug(f"Closed SQLite connection to {self.database}")

    def execute_with_managed_connection(self, action: Callable[[sqlite3.Connection], T]) -> T:
        """Run ``action`` in a transaction on the operation's connection.

        The transaction commits when ``action`` returns and rolls back when
        it raises. A call made from inside another managed action runs on
        the same connection and leaves commit or rollback to the outer call.
        Outside an operation a short-lived connection is used.
        """
        with self._lock:
            if self._managed is not None:
                return action(self._managed)

            temporary = self._connection is None
            connection = self._open() if temporary else self._connection
            self._managed = connection
            try:
                with connection:
                    return action(connection)
            finally:
                self._managed = None
                if temporary:
                    connection.close()

    def close(self) -> None:
        """Close the connection kept for an in-memory database."""
        with self._lock:
            if self._connection is not None and not self.in_operation:
                self._connection.close()
                self._connection = None
