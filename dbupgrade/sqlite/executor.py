"""SQLite script executor.

Runs script contents with ``sqlite3.Connection.executescript`` after
substituting ``$name$`` variable tokens.

In per-script transaction mode the script opens a transaction that is
left for the managed connection to finish, so a journal write made in
the same managed call commits or rolls back with the script. Scripts that
begin their own transaction run unwrapped.
"""

import logging
import re
import sqlite3
from collections.abc import Mapping
from enum import Enum
from typing import Optional

from ..engine.base import Script, ScriptExecutionError, VariableSubstitutionError
from ..engine.protocols import UpgradeLog
from ..log import NullUpgradeLog
from .connection import SqliteConnectionManager
from .journal import SqliteTableJournal

logger = logging.getLogger(__name__)

VARIABLE_TOKEN_PATTERN = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)\$")

# BEGIN as a statement of its own; trigger bodies use BEGIN without a semicolon
BEGIN_STATEMENT_PATTERN = re.compile(
    r"^\s*BEGIN(\s+(DEFERRED|IMMEDIATE|EXCLUSIVE))?(\s+TRANSACTION)?\s*;",
    re.IGNORECASE | re.MULTILINE,
)


class TransactionMode(str, Enum):
    """How script execution is wrapped in transactions."""

    NO_TRANSACTION = "none"
    TRANSACTION_PER_SCRIPT = "per_script"


def substitute_variables(contents: str, variables: Mapping[str, str]) -> str:
    """Replace ``$name$`` tokens with variable values.

    Raises:
        VariableSubstitutionError: If a token names an undefined variable
    """

    def replace(match: re.Match) -> str:
        name = match.group(1)
        if name not in variables:
            raise VariableSubstitutionError(f"Variable {name} has no value defined")
        return str(variables[name])

    return VARIABLE_TOKEN_PATTERN.sub(replace, contents)


def manages_own_transaction(sql: str) -> bool:
    """Check whether a script opens its own transaction with BEGIN."""
    return BEGIN_STATEMENT_PATTERN.search(sql) is not None


class SqliteScriptExecutor:
    """Executes scripts against a SQLite database."""

    def __init__(
        self,
        connection_manager: SqliteConnectionManager,
        journal: SqliteTableJournal,
        log: Optional[UpgradeLog] = None,
        transaction_mode: TransactionMode = TransactionMode.TRANSACTION_PER_SCRIPT,
        substitute: bool = True,
    ):
        """Initialize the executor.

        Args:
            connection_manager: Connection manager of the target database
            journal: Journal whose table verify_schema ensures
            log: Upgrade log
            transaction_mode: Wrap each script in its own transaction, or not
            substitute: Replace $name$ tokens before execution
        """
        self.connection_manager = connection_manager
        self.journal = journal
        self.log = log or NullUpgradeLog()
        self.transaction_mode = TransactionMode(transaction_mode)
        self.substitute = substitute

    def verify_schema(self) -> None:
        """Ensure the journal table exists before any script runs."""
        self.journal.ensure_table_exists()

    def prepare(self, script: Script, variables: Optional[Mapping[str, str]] = None) -> str:
        """Return the SQL that ``execute`` would run for ``script``."""
        sql = script.contents
        if self.substitute:
            sql = substitute_variables(sql, variables or {})
        if self.transaction_mode != TransactionMode.TRANSACTION_PER_SCRIPT:
            return sql
        if manages_own_transaction(sql):
            logger.debug(f"Script {script.name} manages its own transaction")
            return sql
        # Left open; the managed connection commits or rolls back
        return f"BEGIN;\n{sql}\n;"

    def execute(self, script: Script, variables: Optional[Mapping[str, str]] = None) -> None:
        """Execute ``script``.

        Raises:
            VariableSubstitutionError: If the script uses an undefined variable
            ScriptExecutionError: If SQLite rejects the script
        """
        sql = self.prepare(script, variables)
        logger.debug(f"Executing {script.name} ({len(sql)} chars)")

        try:
            self.connection_manager.execute_with_managed_connection(
                lambda connection: connection.executescript(sql)
            )
        except sqlite3.Error as e:
            self.log.error(f"SQLite error in script {script.name}: {e}")
            raise ScriptExecutionError(script.name, str(e)) from e
