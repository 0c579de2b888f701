"""Tests for UpgradeEngine upgrades and the event stream."""

import pytest

from dbupgrade.engine import (
    RollbackScriptExclusionFilter,
    Script,
    ScriptExecutionError,
    ScriptOptions,
    UpgradeState,
)

from tests.helpers.fakes import InMemoryJournal, RecordingExecutor, build_engine, scripts


class FailingStoreJournal(InMemoryJournal):
    """Journal that refuses to store one script."""

    def __init__(self, fail_on: str):
        super().__init__()
        self.fail_on = fail_on

    def store_executed_script(self, script, connection):
        if script.name == self.fail_on:
            raise RuntimeError("journal write failed")
        super().store_executed_script(script, connection)


class TestPerformUpgrade:
    """Tests for UpgradeEngine.perform_upgrade."""

    def test_runs_pending_scripts_in_order(self):
        """Test pending scripts run and are journaled in sequence."""
        engine, journal, executor, _, _ = build_engine(scripts("V3.sql", "V1.sql", "V2.sql"))

        result = engine.perform_upgrade()

        assert result.successful
        assert result.script_names == ["V1.sql", "V2.sql", "V3.sql"]
        assert executor.executed == ["V1.sql", "V2.sql", "V3.sql"]
        assert journal.executed == ["V1.sql", "V2.sql", "V3.sql"]

    def test_skips_executed_scripts(self):
        """Test journaled scripts are not executed again."""
        engine, journal, executor, _, _ = build_engine(
            scripts("V1.sql", "V2.sql"), executed=["V1.sql"]
        )

        result = engine.perform_upgrade()

        assert result.script_names == ["V2.sql"]
        assert journal.executed == ["V1.sql", "V2.sql"]

    def test_nothing_pending(self):
        """Test an empty selection succeeds without verifying the schema."""
        engine, _, executor, _, log = build_engine(scripts("V1.sql"), executed=["V1.sql"])

        result = engine.perform_upgrade()

        assert result.successful
        assert result.scripts == ()
        assert executor.verify_calls == 0
        assert "No new scripts need to be executed - completing." in log.of_level("info")

    def test_verifies_schema_once_before_scripts(self):
        """Test the schema is verified exactly once per upgrade."""
        engine, _, executor, _, _ = build_engine(scripts("V1.sql", "V2.sql"))

        engine.perform_upgrade()

        assert executor.verify_calls == 1

    def test_stops_at_first_failure(self):
        """Test a failing script halts the run and is reported."""
        executor = RecordingExecutor(fail_on=["V2.sql"])
        engine, journal, _, _, log = build_engine(
            scripts("V1.sql", "V2.sql", "V3.sql"), executor=executor
        )

        result = engine.perform_upgrade()

        assert not result.successful
        assert result.script_names == ["V1.sql"]
        assert result.error_script == "V2.sql"
        assert isinstance(result.error, ScriptExecutionError)
        assert journal.executed == ["V1.sql"]
        assert executor.executed == ["V1.sql"]
        assert any("in script V2.sql" in message for message in log.errors)

    def test_journal_failure_stops_run(self):
        """Test a script whose journal write fails is reported as the failing script."""
        journal = FailingStoreJournal("V2.sql")
        engine, _, executor, _, _ = build_engine(
            scripts("V1.sql", "V2.sql", "V3.sql"), journal=journal
        )

        result = engine.perform_upgrade()

        assert not result.successful
        assert result.script_names == ["V1.sql"]
        assert result.error_script == "V2.sql"
        assert journal.executed == ["V1.sql"]
        assert executor.executed == ["V1.sql", "V2.sql"]

    def test_verify_failure(self):
        """Test a schema verification fault fails with no progress."""
        executor = RecordingExecutor(verify_error=RuntimeError("no journal table"))
        engine, journal, _, _, _ = build_engine(scripts("V1.sql"), executor=executor)

        result = engine.perform_upgrade()

        assert not result.successful
        assert result.scripts == ()
        assert result.error_script is None
        assert result.error_message == "RuntimeError: no journal table"
        assert journal.executed == []

    def test_discovery_failure_becomes_result(self):
        """Test a provider fault is returned, not raised."""

        class BrokenProvider:
            def get_scripts(self, connection_manager):
                raise OSError("disk gone")

        engine, _, _, _, _ = build_engine([], script_providers=(BrokenProvider(),))

        result = engine.perform_upgrade()

        assert not result.successful
        assert isinstance(result.error, OSError)

    def test_guard_released(self):
        """Test the operation guard is released on success and failure."""
        engine, _, _, manager, _ = build_engine(scripts("V1.sql"))
        engine.perform_upgrade()
        assert manager.active == 0

        failing = RecordingExecutor(fail_on=["V1.sql"])
        engine, _, _, manager, _ = build_engine(scripts("V1.sql"), executor=failing)
        engine.perform_upgrade()
        assert manager.active == 0

    def test_passes_variables(self):
        """Test configured variables reach the executor."""
        engine, _, executor, _, _ = build_engine(scripts("V1.sql"), variables={"schema": "main"})

        engine.perform_upgrade()

        assert executor.variables == [{"schema": "main"}]

    def test_second_upgrade_is_noop(self):
        """Test running twice executes each script once."""
        engine, _, executor, _, _ = build_engine(scripts("V1.sql", "V2.sql"))

        engine.perform_upgrade()
        result = engine.perform_upgrade()

        assert result.successful
        assert result.scripts == ()
        assert executor.executed == ["V1.sql", "V2.sql"]

    def test_run_groups(self):
        """Test run groups decide the order before names."""
        catalog = [
            Script("A_seed.sql", options=ScriptOptions(run_group_order=200)),
            Script("B_schema.sql"),
        ]
        engine, _, executor, _, _ = build_engine(catalog)

        engine.perform_upgrade()

        assert executor.executed == ["B_schema.sql", "A_seed.sql"]

    def test_rollback_scripts_not_run_forward(self):
        """Test the exclusion filter keeps rollbacks out of an upgrade."""
        engine, _, executor, _, _ = build_engine(
            scripts("V1.sql", "V1_rollback.sql"),
            script_filter=RollbackScriptExclusionFilter("_rollback"),
        )

        engine.perform_upgrade()

        assert executor.executed == ["V1.sql"]


class TestListeners:
    """Tests for script executed notifications."""

    def test_listener_receives_events(self):
        """Test each executed script is announced in order."""
        events = []
        engine, _, _, _, _ = build_engine(
            scripts("V1.sql", "V2.sql"), listeners=(events.append,)
        )

        engine.perform_upgrade()

        assert [(e.script.name, e.index, e.total, e.remaining) for e in events] == [
            ("V1.sql", 0, 2, 1),
            ("V2.sql", 1, 2, 0),
        ]

    def test_events_follow_journaling(self):
        """Test a script is journaled before its event is emitted."""
        seen = []
        engine, journal, _, _, _ = build_engine(
            scripts("V1.sql"), listeners=(lambda e: seen.append(list(journal.executed)),)
        )

        engine.perform_upgrade()

        assert seen == [["V1.sql"]]

    def test_listener_failure_is_logged(self):
        """Test a failing listener does not stop the upgrade."""

        def broken(event):
            raise ValueError("listener broke")

        engine, _, executor, _, log = build_engine(scripts("V1.sql", "V2.sql"), listeners=(broken,))

        result = engine.perform_upgrade()

        assert result.successful
        assert executor.executed == ["V1.sql", "V2.sql"]
        assert len(log.warnings) == 2
        assert "listener broke" in log.warnings[0]

    def test_no_events_on_failure(self):
        """Test a failed script emits no event."""
        events = []
        executor = RecordingExecutor(fail_on=["V2.sql"])
        engine, _, _, _, _ = build_engine(
            scripts("V1.sql", "V2.sql"), executor=executor, listeners=(events.append,)
        )

        engine.perform_upgrade()

        assert [e.script.name for e in events] == ["V1.sql"]


class TestUpgradeRun:
    """Tests for the UpgradeRun event stream."""

    def test_lazy_start(self):
        """Test nothing runs until the first event is requested."""
        engine, _, executor, manager, _ = build_engine(scripts("V1.sql"))

        run = engine.iter_upgrade()

        assert run.state == UpgradeState.IDLE
        assert manager.acquired == 0
        assert executor.executed == []

    def test_state_transitions(self):
        """Test the run moves through running to succeeded."""
        engine, _, _, manager, _ = build_engine(scripts("V1.sql", "V2.sql"))
        run = engine.iter_upgrade()

        first = next(run)
        assert first.script.name == "V1.sql"
        assert run.state == UpgradeState.RUNNING
        assert manager.active == 1
        assert not run.finished

        events = list(run)

        assert [e.script.name for e in events] == ["V2.sql"]
        assert run.state == UpgradeState.SUCCEEDED
        assert run.finished
        assert run.result.script_names == ["V1.sql", "V2.sql"]
        assert manager.active == 0

    def test_failed_state(self):
        """Test a failing script ends the stream in the failed state."""
        executor = RecordingExecutor(fail_on=["V1.sql"])
        engine, _, _, _, _ = build_engine(scripts("V1.sql"), executor=executor)
        run = engine.iter_upgrade()

        assert list(run) == []
        assert run.state == UpgradeState.FAILED
        assert run.result.error_script == "V1.sql"

    def test_empty_run_succeeds(self):
        """Test an empty selection ends in the succeeded state."""
        engine, _, _, _, _ = build_engine(scripts("V1.sql"), executed=["V1.sql"])
        run = engine.iter_upgrade()

        assert list(run) == []
        assert run.state == UpgradeState.SUCCEEDED
        assert run.result.successful

    def test_close_releases_guard(self):
        """Test closing a run part way releases the guard."""
        engine, journal, executor, manager, _ = build_engine(scripts("V1.sql", "V2.sql"))
        run = engine.iter_upgrade()

        next(run)
        run.close()

        assert manager.active == 0
        assert run.result is None
        assert executor.executed == ["V1.sql"]
        assert journal.executed == ["V1.sql"]

    def test_exhausted_run_stays_exhausted(self):
        """Test iterating a finished run yields nothing more."""
        engine, _, _, _, _ = build_engine(scripts("V1.sql"))
        run = engine.iter_upgrade()
        list(run)

        with pytest.raises(StopIteration):
            next(run)

    def test_listeners_not_called(self):
        """Test the event stream leaves listeners to perform_upgrade."""
        events = []
        engine, _, _, _, _ = build_engine(scripts("V1.sql"), listeners=(events.append,))

        list(engine.iter_upgrade())

        assert events == []
