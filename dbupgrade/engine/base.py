"""Base types for the upgrade engine.

Defines the core values shared by every engine component:
- Script: an immutable schema-change unit
- ScriptOptions / ScriptType: ordering bucket and run policy of a script
- ScriptExecutedEvent: notification emitted after each forward script
- UpgradeState: states of the upgrade state machine
- UpgradeError and its subclasses
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

DEFAULT_RUN_GROUP_ORDER = 100


class UpgradeError(Exception):
    """Base exception for upgrade engine errors."""

    pass


class ConfigurationError(UpgradeError):
    """Raised when the engine or its settings are misconfigured."""

    pass


class ScriptExecutionError(UpgradeError):
    """Raised when a single script fails to execute."""

    def __init__(self, script_name: str, message: str):
        super().__init__(f"Script {script_name} failed: {message}")
        self.script_name = script_name


class RollbackTargetNotFoundError(UpgradeError):
    """Raised when the script to roll back has never been executed."""

    def __init__(self, script_name: str):
        super().__init__(
            f"Script to rollback cannot be found in the journal: {script_name}"
        )
        self.script_name = script_name


class VariableSubstitutionError(UpgradeError):
    """Raised when a script references a variable with no value."""

    pass


class ScriptType(str, Enum):
    """How often a script is allowed to run."""

    RUN_ONCE = "run_once"
    RUN_ALWAYS = "run_always"


class UpgradeState(str, Enum):
    """States of an upgrade run."""

    IDLE = "idle"
    VERIFYING_SCHEMA = "verifying_schema"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class ScriptOptions:
    """Ordering and run policy attached to a script.

    Attributes:
        run_group_order: Coarse ordering bucket, sorted before script names
        script_type: Whether the script runs once or on every upgrade
    """

    run_group_order: int = DEFAULT_RUN_GROUP_ORDER
    script_type: ScriptType = ScriptType.RUN_ONCE


@dataclass(frozen=True)
class Script:
    """A named schema-change script.

    Scripts are rebuilt from the providers on every operation and are
    never persisted by the engine; only their names reach the journal.
    """

    name: str
    contents: str = ""
    options: ScriptOptions = field(default_factory=ScriptOptions)

    @property
    def run_group_order(self) -> int:
        return self.options.run_group_order

    def __repr__(self) -> str:
        return f"<Script {self.name}>"


@dataclass(frozen=True)
class ScriptExecutedEvent:
    """Emitted once a forward script has executed and been journaled.

    Attributes:
        script: Script that was executed
        index: Zero-based position of the script in the run
        total: Number of scripts selected for the run
    """

    script: Script
    index: int
    total: int

    @property
    def remaining(self) -> int:
        return self.total - self.index - 1


def format_error(error: Optional[BaseException]) -> Optional[str]:
    """Render an exception as ``Type: message`` for logs and CLI output."""
    if error is None:
        return None
    return f"{type(error).__name__}: {error}"
