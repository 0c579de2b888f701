"""Immutable engine configuration.

Every collaborator is injected here once; the engine never resolves
collaborators from globals.
"""

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType

from ..log import NullUpgradeLog
from .base import ScriptExecutedEvent
from .comparers import OrdinalScriptNameComparer
from .filters import DefaultScriptFilter
from .protocols import (
    ConnectionManager,
    Journal,
    ScriptExecutor,
    ScriptFilter,
    ScriptNameComparer,
    ScriptProvider,
    UpgradeLog,
)

VARIABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

ScriptExecutedListener = Callable[[ScriptExecutedEvent], None]


@dataclass(frozen=True)
class UpgradeConfiguration:
    """Collaborators and settings for one UpgradeEngine.

    Attributes:
        connection_manager: Connection lifecycle and operation guard
        script_executor: Runs script contents
        journal: Records executed script names
        script_providers: Sources of candidate scripts, queried in order
        script_filter: Executed-set filter policy
        script_name_comparer: Order and equality over script names
        log: Upgrade log
        variables: Values substituted into scripts by the executor
        listeners: Called with each ScriptExecutedEvent during perform_upgrade
    """

    connection_manager: ConnectionManager
    script_executor: ScriptExecutor
    journal: Journal
    script_providers: tuple[ScriptProvider, ...] = ()
    script_filter: ScriptFilter = field(default_factory=DefaultScriptFilter)
    script_name_comparer: ScriptNameComparer = field(default_factory=OrdinalScriptNameComparer)
    log: UpgradeLog = field(default_factory=NullUpgradeLog)
    variables: Mapping[str, str] = field(default_factory=dict)
    listeners: tuple[ScriptExecutedListener, ...] = ()

    def __post_init__(self) -> None:
        # Freeze mutable inputs so the value cannot change after construction
        object.__setattr__(self, "script_providers", tuple(self.script_providers))
        object.__setattr__(self, "listeners", tuple(self.listeners))
        object.__setattr__(self, "variables", MappingProxyType(dict(self.variables)))

    def validate(self) -> list[str]:
        """Validate configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if self.connection_manager is None:
            errors.append("A connection manager is required")
        if self.script_executor is None:
            errors.append("A script executor is required")
        if self.journal is None:
            errors.append("A journal is required")
        if not self.script_providers:
            errors.append("At least one script provider is required")
        if self.script_filter is None:
            errors.append("A script filter is required")
        if self.script_name_comparer is None:
            errors.append("A script name comparer is required")

        for name in self.variables:
            if not VARIABLE_NAME_PATTERN.match(name):
                errors.append(f"Invalid variable name: {name!r}")

        return errors

    def with_listener(self, listener: ScriptExecutedListener) -> "UpgradeConfiguration":
        """Return a copy with ``listener`` appended."""
        return replace(self, listeners=self.listeners + (listener,))

    def with_variables(self, **variables: str) -> "UpgradeConfiguration":
        """Return a copy with ``variables`` merged over the current ones."""
        merged = dict(self.variables)
        merged.update(variables)
        return replace(self, variables=merged)

