"""Upgrade engine for applying, rolling back and marking scripts.

Provides:
- Upgrade: run every pending script in order, stopping at the first failure
- Event stream of executed scripts during an upgrade
- Downgrade: run rollback scripts for one script or a cascade of scripts
- Mark as executed: journal pending scripts without running them
- Queries over discovered, pending and executed scripts

Every operation that returns an UpgradeResult converts collaborator faults
into a failed result; query operations raise UpgradeError instead.
"""

import logging
import traceback
from collections.abc import Callable, Generator, Iterator
from contextlib import contextmanager
from typing import Any, Optional

from .base import (
    ConfigurationError,
    RollbackTargetNotFoundError,
    Script,
    ScriptExecutedEvent,
    UpgradeError,
    UpgradeState,
)
from .catalog import aggregate_scripts, contains_name, find_script, sequence_scripts
from .configuration import UpgradeConfiguration
from .protocols import UpgradeLog
from .result import UpgradeResult
from .rollback import RollbackStep, resolve_rollback_steps

logger = logging.getLogger(__name__)

UpgradeSteps = Generator[ScriptExecutedEvent, None, UpgradeResult]


@contextmanager
def _query_boundary(description: str):
    """Re-raise collaborator faults of a query operation as UpgradeError."""
    try:
        yield
    except UpgradeError:
        raise
    except Exception as e:
        raise UpgradeError(f"Failed to {description}: {e}") from e


def _failure_message(operation: str, script_name: Optional[str]) -> str:
    """Build the error log entry for the exception being handled."""
    location = f" in script {script_name}" if script_name else ""
    return (
        f"{operation} failed due to an unexpected exception{location}:\n"
        f"{traceback.format_exc()}"
    )


class UpgradeRun(Iterator[ScriptExecutedEvent]):
    """An upgrade in progress, consumed as a stream of executed-script events.

    Nothing happens until the first event is requested. Once the stream is
    exhausted, ``result`` holds the UpgradeResult. Closing the run early
    releases the operation guard; ``result`` then stays None.

    Usage:
        run = engine.iter_upgrade()
        for event in run:
            print(f"{event.script.name} done, {event.remaining} to go")
        print(run.result.successful)
    """

    def __init__(self, steps_factory: Callable[["UpgradeRun"], UpgradeSteps]):
        self.state = UpgradeState.IDLE
        self.result: Optional[UpgradeResult] = None
        self._steps = steps_factory(self)

    def __iter__(self) -> "UpgradeRun":
        return self

    def __next__(self) -> ScriptExecutedEvent:
        if self.result is not None:
            raise StopIteration
        try:
            return next(self._steps)
        except StopIteration as stop:
            self.result = stop.value
            raise

    @property
    def finished(self) -> bool:
        return self.result is not None

    def close(self) -> None:
        """Abandon the run, releasing the operation guard."""
        self._steps.close()


class UpgradeEngine:
    """Orchestrates the database upgrade process.

    Usage:
        engine = UpgradeEngine(configuration)
        if engine.is_upgrade_required():
            result = engine.perform_upgrade()
    """

    def __init__(self, configuration: UpgradeConfiguration):
        """Initialize the engine.

        Args:
            configuration: Immutable engine configuration

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        errors = configuration.validate()
        if errors:
            raise ConfigurationError(f"Invalid upgrade configuration: {'; '.join(errors)}")
        self.configuration = configuration

    @property
    def log(self) -> UpgradeLog:
        return self.configuration.log

    # ==================== Connection ====================

    def try_connect(self) -> tuple[bool, str]:
        """Try to connect to the database.

        Returns:
            Tuple of (connected, error_message)
        """
        try:
            return self.configuration.connection_manager.try_connect(self.log)
        except Exception as e:
            self.log.error(f"Connection check failed: {e}")
            return False, str(e)

    # ==================== Upgrade ====================

    def is_upgrade_required(self) -> bool:
        """Check whether any script is pending."""
        return len(self.get_scripts_to_execute()) != 0

    def iter_upgrade(self) -> UpgradeRun:
        """Start an upgrade consumed as an event stream.

        Listeners in the configuration are not called; the caller handles
        each event itself.
        """
        return UpgradeRun(self._upgrade_steps)

    def perform_upgrade(self) -> UpgradeResult:
        """Run every pending script, notifying configured listeners.

        Returns:
            Result with the scripts executed before any failure
        """
        run = self.iter_upgrade()
        for event in run:
            self._notify(event)
        return run.result

    def _notify(self, event: ScriptExecutedEvent) -> None:
        for listener in self.configuration.listeners:
            try:
                listener(event)
            except Exception as e:
                self.log.warning(f"Script executed listener failed for {event.script.name}: {e}")

    def _upgrade_steps(self, run: UpgradeRun) -> UpgradeSteps:
        config = self.configuration
        executed: list[Script] = []
        executing: Optional[str] = None

        try:
            with config.connection_manager.operation_starting(self.log, executed):
                self.log.info("Beginning database upgrade")

                scripts = self._get_scripts_to_execute_inside_operation()
                if not scripts:
                    self.log.info("No new scripts need to be executed - completing.")
                    run.state = UpgradeState.SUCCEEDED
                    return UpgradeResult.succeeded(executed)

                run.state = UpgradeState.VERIFYING_SCHEMA
                config.script_executor.verify_schema()

                run.state = UpgradeState.RUNNING
                total = len(scripts)
                for index, script in enumerate(scripts):
                    executing = script.name
                    self.log.info(f"Executing script {script.name} ({index + 1}/{total})")

                    self._execute_and_store(script)
                    executed.append(script)

                    yield ScriptExecutedEvent(script=script, index=index, total=total)

                executing = None
                self.log.info("Upgrade successful")
                run.state = UpgradeState.SUCCEEDED
                return UpgradeResult.succeeded(executed)

        except Exception as e:
            run.state = UpgradeState.FAILED
            self.log.error(_failure_message("Upgrade", executing))
            return UpgradeResult.failed(executed, e, executing)

    # ==================== Downgrade ====================

    def perform_downgrade(
        self,
        script_to_rollback: str,
        rollback_suffix: str,
        multiple_rollback: bool = False,
    ) -> UpgradeResult:
        """Run rollback scripts for previously executed scripts.

        Args:
            script_to_rollback: Executed script to roll back (single mode), or
                the script to roll back to, exclusive (cascading mode)
            rollback_suffix: Suffix of the rollback scripts, e.g. "_rollback"
            multiple_rollback: Roll back every script executed after
                ``script_to_rollback`` in reverse order instead of the
                script itself

        Returns:
            Result with the rollback scripts that ran before any failure
        """
        config = self.configuration
        rollbacks: list[Script] = []
        executing: Optional[str] = None

        try:
            if not rollback_suffix:
                raise ConfigurationError("A rollback suffix is required for a downgrade")

            with config.connection_manager.operation_starting(self.log, rollbacks):
                self.log.info("Beginning database downgrade")

                steps = self._get_rollback_steps_inside_operation(
                    script_to_rollback, rollback_suffix, multiple_rollback
                )
                if not steps:
                    self.log.info(
                        f"No rollback scripts to run for {script_to_rollback} - completing."
                    )
                    return UpgradeResult.succeeded(rollbacks)

                config.script_executor.verify_schema()

                for step in steps:
                    executing = step.script.name
                    self.log.info(f"Rolling back {step.forward_name} with {step.script.name}")

                    self._execute_and_remove(step)
                    rollbacks.append(step.script)

                self.log.info("Downgrade successful")
                return UpgradeResult.succeeded(rollbacks)

        except RollbackTargetNotFoundError as e:
            self.log.error(str(e))
            return UpgradeResult.failed(rollbacks, e, e.script_name)

        except Exception as e:
            self.log.error(_failure_message("Downgrade", executing))
            return UpgradeResult.failed(rollbacks, e, executing)

    def _get_rollback_steps_inside_operation(
        self,
        script_to_rollback: str,
        rollback_suffix: str,
        multiple_rollback: bool,
    ) -> list[RollbackStep]:
        config = self.configuration
        executed_names = list(config.journal.get_executed_scripts())
        catalog = self._discover_scripts()
        return resolve_rollback_steps(
            script_to_rollback,
            rollback_suffix,
            multiple_rollback,
            executed_names,
            catalog,
            config.script_name_comparer,
            self.log,
        )

    # ==================== Mark as executed ====================

    def mark_as_executed(self, latest_script: Optional[str] = None) -> UpgradeResult:
        """Journal pending scripts without executing them.

        Useful for bringing environments whose schema was changed by hand
        in sync with the scripts.

        Args:
            latest_script: Stop after marking this script (inclusive).
                If None, every pending script is marked.

        Returns:
            Result with the scripts that were marked
        """
        config = self.configuration
        comparer = config.script_name_comparer
        marked: list[Script] = []
        marking: Optional[str] = None

        try:
            with config.connection_manager.operation_starting(self.log, marked):
                self.log.info("Beginning marking scripts as executed")

                scripts = self._get_scripts_to_execute_inside_operation()
                if latest_script is not None and not find_script(scripts, latest_script, comparer):
                    self.log.warning(
                        f"Script {latest_script} is not pending; marking all pending scripts"
                    )

                for script in scripts:
                    marking = script.name
                    self._store_executed_script(script)
                    self.log.info(f"Marking script {script.name} as executed")
                    marked.append(script)

                    if latest_script is not None and comparer.equals(script.name, latest_script):
                        break

                self.log.info("Script marking successful")
                return UpgradeResult.succeeded(marked)

        except Exception as e:
            self.log.error(_failure_message("Marking scripts as executed", marking))
            return UpgradeResult.failed(marked, e, marking)

    # ==================== Queries ====================

    def get_scripts_to_execute(self) -> list[Script]:
        """Return the scripts an upgrade would execute, in order."""
        with _query_boundary("determine scripts to execute"):
            with self.configuration.connection_manager.operation_starting(self.log, []):
                return self._get_scripts_to_execute_inside_operation()

    def get_executed_scripts(self) -> list[str]:
        """Return the journaled script names in the order they were applied."""
        with _query_boundary("read executed scripts"):
            with self.configuration.connection_manager.operation_starting(self.log, []):
                return list(self.configuration.journal.get_executed_scripts())

    def get_discovered_scripts(self) -> list[Script]:
        """Return every script the providers discover, unfiltered and unsorted."""
        with _query_boundary("discover scripts"):
            return self._discover_scripts()

    def get_executed_but_not_discovered_scripts(self) -> list[str]:
        """Return journaled names that no provider discovers any more."""
        comparer = self.configuration.script_name_comparer
        discovered = [s.name for s in self.get_discovered_scripts()]

        missing: list[str] = []
        for name in self.get_executed_scripts():
            if contains_name(discovered, name, comparer) or contains_name(missing, name, comparer):
                continue
            missing.append(name)
        return missing

    # ==================== Internals ====================

    def _discover_scripts(self) -> list[Script]:
        config = self.configuration
        return aggregate_scripts(config.script_providers, config.connection_manager)

    def _get_scripts_to_execute_inside_operation(self) -> list[Script]:
        config = self.configuration
        comparer = config.script_name_comparer

        executed_names = set(config.journal.get_executed_scripts())
        ordered = sequence_scripts(self._discover_scripts(), comparer)
        selected = list(config.script_filter.filter(ordered, executed_names, comparer))

        logger.debug(
            f"Discovered {len(ordered)} script(s), {len(executed_names)} executed, "
            f"{len(selected)} selected"
        )
        return selected

    def _store_executed_script(self, script: Script) -> None:
        config = self.configuration
        config.connection_manager.execute_with_managed_connection(
            lambda connection: config.journal.store_executed_script(script, connection)
        )

    def _execute_and_store(self, script: Script) -> None:
        """Run a script and journal it in one managed-connection call."""
        config = self.configuration

        def run(connection: Any) -> None:
            config.script_executor.execute(script, config.variables)
            config.journal.store_executed_script(script, connection)

        config.connection_manager.execute_with_managed_connection(run)

    def _execute_and_remove(self, step: RollbackStep) -> None:
        """Run a rollback script and retract its forward entry in one managed call."""
        config = self.configuration

        def run(connection: Any) -> None:
            config.script_executor.execute(step.script, config.variables)
            config.journal.remove_executed_script(step.forward_script)

        config.connection_manager.execute_with_managed_connection(run)
