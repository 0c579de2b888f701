"""Executed-set filter policies.

Every policy receives the sequencer's output and returns an ordered
subset of it. Policies only include or exclude; none of them reorders.
"""

from collections.abc import Sequence
from typing import Optional

from .base import Script, ScriptType
from .catalog import contains_name
from .protocols import ScriptFilter, ScriptNameComparer
from .rollback import is_rollback_script_name


class DefaultScriptFilter:
    """Excludes every script already recorded in the journal."""

    def filter(
        self,
        sorted_scripts: Sequence[Script],
        executed_script_names: set[str],
        comparer: ScriptNameComparer,
    ) -> list[Script]:
        return [
            s
            for s in sorted_scripts
            if not contains_name(executed_script_names, s.name, comparer)
        ]


class RunAlwaysScriptFilter:
    """Like the default filter, but keeps scripts tagged ``RUN_ALWAYS``."""

    def filter(
        self,
        sorted_scripts: Sequence[Script],
        executed_script_names: set[str],
        comparer: ScriptNameComparer,
    ) -> list[Script]:
        return [
            s
            for s in sorted_scripts
            if s.options.script_type == ScriptType.RUN_ALWAYS
            or not contains_name(executed_script_names, s.name, comparer)
        ]


class RollbackScriptExclusionFilter:
    """Keeps rollback scripts out of the forward selection.

    Rollback scripts usually live next to the scripts they undo, so the
    catalog contains both; only the downgrade path may run them.
    """

    def __init__(self, rollback_suffix: str, inner: Optional[ScriptFilter] = None):
        """Initialize the filter.

        Args:
            rollback_suffix: Suffix marking rollback scripts (e.g. "_rollback")
            inner: Filter applied to the remaining scripts (default filter if None)
        """
        self.rollback_suffix = rollback_suffix
        self.inner = inner or DefaultScriptFilter()

    def filter(
        self,
        sorted_scripts: Sequence[Script],
        executed_script_names: set[str],
        comparer: ScriptNameComparer,
    ) -> list[Script]:
        forward = [
            s for s in sorted_scripts if not is_rollback_script_name(s.name, self.rollback_suffix)
        ]
        return self.inner.filter(forward, executed_script_names, comparer)
