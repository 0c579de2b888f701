"""Versioned schema-change scripts for databases.

Discovers scripts, runs the ones the journal has not recorded in a
deterministic order, and rolls scripts back through their rollback
counterparts.

Usage:
    from dbupgrade import EngineSettings, build_sqlite_engine

    engine = build_sqlite_engine(EngineSettings(database="app.db", scripts_dir="sql"))
    result = engine.perform_upgrade()
    if not result.successful:
        print(f"Failed in {result.error_script}: {result.error_message}")

    # Undo V3.sql with V3_rollback.sql
    engine.perform_downgrade("V3.sql", "_rollback")

CLI Usage:
    python -m dbupgrade upgrade --database app.db --scripts-dir sql
    python -m dbupgrade downgrade V3.sql --cascade
    python -m dbupgrade status

Environment Variables:
    DBUPGRADE_DATABASE: SQLite database file
    DBUPGRADE_SCRIPTS_DIR: Directory holding the scripts
    DBUPGRADE_JOURNAL_TABLE: Journal table name
    DBUPGRADE_ROLLBACK_SUFFIX: Suffix of rollback scripts
    DBUPGRADE_CASE_INSENSITIVE: Compare script names ignoring case (true/false)
    DBUPGRADE_TRANSACTION_MODE: "per_script" or "none"
"""

from .config import EngineSettings, get_settings, set_settings
from .engine import (
    ConfigurationError,
    RollbackTargetNotFoundError,
    Script,
    ScriptExecutedEvent,
    ScriptExecutionError,
    ScriptOptions,
    ScriptType,
    UpgradeConfiguration,
    UpgradeEngine,
    UpgradeError,
    UpgradeResult,
    UpgradeRun,
)
from .factory import build_sqlite_engine
from .log import LoggingUpgradeLog, NullUpgradeLog
from .providers import FileSystemScriptProvider, PackageScriptProvider, StaticScriptProvider

__version__ = "0.1.0"

__all__ = [
    # Settings
    "EngineSettings",
    "get_settings",
    "set_settings",
    # Engine
    "UpgradeConfiguration",
    "UpgradeEngine",
    "UpgradeRun",
    "UpgradeResult",
    "build_sqlite_engine",
    # Scripts
    "Script",
    "ScriptOptions",
    "ScriptType",
    "ScriptExecutedEvent",
    # Providers
    "StaticScriptProvider",
    "FileSystemScriptProvider",
    "PackageScriptProvider",
    # Logs
    "LoggingUpgradeLog",
    "NullUpgradeLog",
    # Errors
    "UpgradeError",
    "ConfigurationError",
    "ScriptExecutionError",
    "RollbackTargetNotFoundError",
]
