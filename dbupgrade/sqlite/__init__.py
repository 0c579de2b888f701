"""SQLite collaborators for the upgrade engine.

Provides:
- SqliteConnectionManager: per-operation connection and guard
- SqliteTableJournal: executed scripts recorded in a table
- SqliteScriptExecutor: script execution with $name$ variable substitution
"""

from .connection import SqliteConnectionManager
from .executor import (
    SqliteScriptExecutor,
    TransactionMode,
    manages_own_transaction,
    substitute_variables,
)
from .journal import SqliteTableJournal

__all__ = [
    "SqliteConnectionManager",
    "SqliteScriptExecutor",
    "SqliteTableJournal",
    "TransactionMode",
    "manages_own_transaction",
    "substitute_variables",
]
