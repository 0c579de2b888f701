"""Collaborator protocols for the upgrade engine.

Defines the contracts the engine consumes. Concrete implementations live
in ``dbupgrade.providers``, ``dbupgrade.sqlite`` and ``dbupgrade.log``;
tests substitute in-memory fakes.
"""

from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, ContextManager, Optional, Protocol, TypeVar, runtime_checkable

from .base import Script

T = TypeVar("T")


@runtime_checkable
class UpgradeLog(Protocol):
    """Leveled sink for engine progress messages."""

    def info(self, message: str) -> None:
        ...

    def warning(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


@runtime_checkable
class ScriptNameComparer(Protocol):
    """Total order over script names."""

    def compare(self, x: str, y: str) -> int:
        ...

    def equals(self, x: str, y: str) -> bool:
        ...

    def sort_key(self) -> Callable[[str], Any]:
        ...


@runtime_checkable
class ConnectionManager(Protocol):
    """Owns connection lifecycle and the per-operation guard."""

    def try_connect(self, log: UpgradeLog) -> tuple[bool, str]:
        """Check connectivity, returning ``(ok, error_message)``."""
        ...

    def operation_starting(
        self, log: UpgradeLog, executed_scripts: list[Script]
    ) -> ContextManager[Any]:
        """Acquire the exclusive operation guard.

        The returned context manager is held for the whole operation and
        released on every exit path.
        """
        ...

    def execute_with_managed_connection(self, action: Callable[[Any], T]) -> T:
        """Run ``action`` with a live connection and return its result.

        A managed call made from inside ``action`` should share its
        connection and unit of work, so a script and its journal change
        succeed or fail together.
        """
        ...


@runtime_checkable
class ScriptProvider(Protocol):
    """Source of candidate scripts. Stateless and idempotent per call."""

    def get_scripts(self, connection_manager: ConnectionManager) -> Iterable[Script]:
        ...


@runtime_checkable
class ScriptExecutor(Protocol):
    """Runs script contents against the target store."""

    def verify_schema(self) -> None:
        """Ensure the store is ready for scripts (e.g. journal table exists)."""
        ...

    def execute(self, script: Script, variables: Optional[Mapping[str, str]] = None) -> None:
        ...


@runtime_checkable
class Journal(Protocol):
    """Durable record of executed script names."""

    def get_executed_scripts(self) -> list[str]:
        """Return executed script names in the order they were applied."""
        ...

    def store_executed_script(self, script: Script, connection: Any) -> None:
        ...

    def remove_executed_script(self, script: Script) -> None:
        ...


@runtime_checkable
class ScriptFilter(Protocol):
    """Selects which sorted scripts an operation should run.

    Implementations may only include or exclude scripts, never reorder.
    """

    def filter(
        self,
        sorted_scripts: Sequence[Script],
        executed_script_names: set[str],
        comparer: ScriptNameComparer,
    ) -> list[Script]:
        ...
