"""Engine construction from settings.

Wires the SQLite collaborators, a file-system script provider and the
rollback-exclusion filter into an UpgradeEngine.
"""

import logging
from collections.abc import Iterable
from typing import Optional

from .config import EngineSettings, get_settings
from .engine import (
    CaseInsensitiveScriptNameComparer,
    ConfigurationError,
    OrdinalScriptNameComparer,
    RollbackScriptExclusionFilter,
    RunAlwaysScriptFilter,
    UpgradeConfiguration,
    UpgradeEngine,
)
from .engine.configuration import ScriptExecutedListener
from .engine.protocols import ScriptProvider, UpgradeLog
from .log import LoggingUpgradeLog
from .providers import FileSystemScriptProvider
from .sqlite import SqliteConnectionManager, SqliteScriptExecutor, SqliteTableJournal

logger = logging.getLogger(__name__)


def build_sqlite_engine(
    settings: Optional[EngineSettings] = None,
    log: Optional[UpgradeLog] = None,
    extra_providers: Iterable[ScriptProvider] = (),
    listeners: Iterable[ScriptExecutedListener] = (),
) -> UpgradeEngine:
    """Build an engine for a SQLite database.

    Args:
        settings: Engine settings (global settings if None)
        log: Upgrade log (a LoggingUpgradeLog if None)
        extra_providers: Providers queried after the scripts directory
        listeners: Called with each executed-script event during upgrades

    Returns:
        Configured UpgradeEngine

    Raises:
        ConfigurationError: If the settings are invalid
    """
    settings = settings or get_settings()
    errors = settings.validate()
    if errors:
        raise ConfigurationError(f"Invalid settings: {'; '.join(errors)}")

    log = log or LoggingUpgradeLog()

    connection_manager = SqliteConnectionManager(
        settings.database, timeout=settings.connect_timeout
    )
    journal = SqliteTableJournal(connection_manager, table_name=settings.journal_table)
    executor = SqliteScriptExecutor(
        connection_manager,
        journal,
        log=log,
        transaction_mode=settings.transaction_mode,
    )

    providers: list[ScriptProvider] = [
        FileSystemScriptProvider(
            settings.scripts_dir,
            include_subdirectories=settings.include_subdirectories,
        )
    ]
    providers.extend(extra_providers)

    comparer = (
        CaseInsensitiveScriptNameComparer()
        if settings.case_insensitive
        else OrdinalScriptNameComparer()
    )

    configuration = UpgradeConfiguration(
        connection_manager=connection_manager,
        script_executor=executor,
        journal=journal,
        script_providers=tuple(providers),
        script_filter=RollbackScriptExclusionFilter(
            settings.rollback_suffix, inner=RunAlwaysScriptFilter()
        ),
        script_name_comparer=comparer,
        log=log,
        variables=settings.variables,
        listeners=tuple(listeners),
    )

    logger.debug(f"Built SQLite engine for {settings.database} using {settings.scripts_dir}")
    return UpgradeEngine(configuration)
