"""Upgrade engine core.

Selects, orders and runs schema-change scripts, and resolves rollbacks.
Collaborators (providers, executor, journal, connection manager, log)
are injected through an UpgradeConfiguration.
"""

from .base import (
    DEFAULT_RUN_GROUP_ORDER,
    ConfigurationError,
    RollbackTargetNotFoundError,
    Script,
    ScriptExecutedEvent,
    ScriptExecutionError,
    ScriptOptions,
    ScriptType,
    UpgradeError,
    UpgradeState,
    VariableSubstitutionError,
)
from .catalog import aggregate_scripts, sequence_scripts
from .comparers import CaseInsensitiveScriptNameComparer, OrdinalScriptNameComparer
from .configuration import UpgradeConfiguration
from .engine import UpgradeEngine, UpgradeRun
from .filters import DefaultScriptFilter, RollbackScriptExclusionFilter, RunAlwaysScriptFilter
from .protocols import (
    ConnectionManager,
    Journal,
    ScriptExecutor,
    ScriptFilter,
    ScriptNameComparer,
    ScriptProvider,
    UpgradeLog,
)
from .result import UpgradeResult
from .rollback import RollbackStep, resolve_rollback_steps, rollback_script_name

__all__ = [
    # Values
    "DEFAULT_RUN_GROUP_ORDER",
    "Script",
    "ScriptOptions",
    "ScriptType",
    "ScriptExecutedEvent",
    "UpgradeState",
    "UpgradeResult",
    "RollbackStep",
    # Errors
    "UpgradeError",
    "ConfigurationError",
    "ScriptExecutionError",
    "RollbackTargetNotFoundError",
    "VariableSubstitutionError",
    # Engine
    "UpgradeConfiguration",
    "UpgradeEngine",
    "UpgradeRun",
    # Ordering and selection
    "aggregate_scripts",
    "sequence_scripts",
    "OrdinalScriptNameComparer",
    "CaseInsensitiveScriptNameComparer",
    "DefaultScriptFilter",
    "RunAlwaysScriptFilter",
    "RollbackScriptExclusionFilter",
    "resolve_rollback_steps",
    "rollback_script_name",
    # Protocols
    "ConnectionManager",
    "Journal",
    "ScriptExecutor",
    "ScriptFilter",
    "ScriptNameComparer",
    "ScriptProvider",
    "UpgradeLog",
]
