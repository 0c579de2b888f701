"""Rollback script resolution.

The rollback counterpart of ``X.ext`` is ``X{suffix}.ext``: the suffix is
inserted before the final extension. Only catalog scripts whose name
matches a derived counterpart are ever run as rollbacks.

Two modes are supported:
- single: undo exactly the target script
- cascading: undo every script executed after the target, most recent first,
  once per name
"""

import posixpath
from collections.abc import Sequence
from dataclasses import dataclass

from .base import RollbackTargetNotFoundError, Script
from .catalog import contains_name, find_script
from .protocols import ScriptNameComparer, UpgradeLog


@dataclass(frozen=True)
class RollbackStep:
    """A rollback script paired with the forward journal entry it retracts."""

    script: Script
    forward_name: str

    @property
    def forward_script(self) -> Script:
        return Script(name=self.forward_name)


def rollback_script_name(script_name: str, rollback_suffix: str) -> str:
    """Derive the rollback counterpart name of a script.

    Examples:
        >>> rollback_script_name("V2.sql", "_down")
        'V2_down.sql'
        >>> rollback_script_name("Scripts.V2.sql", "_down")
        'Scripts.V2_down.sql'
        >>> rollback_script_name("V2", "_down")
        'V2_down'
    """
    stem, extension = posixpath.splitext(script_name)
    return f"{stem}{rollback_suffix}{extension}"


def is_rollback_script_name(script_name: str, rollback_suffix: str) -> bool:
    """Check whether a name follows the rollback naming convention."""
    if not rollback_suffix:
        return False
    stem, _ = posixpath.splitext(script_name)
    return stem.endswith(rollback_suffix)


def resolve_rollback_steps(
    script_to_rollback: str,
    rollback_suffix: str,
    multiple_rollback: bool,
    executed_script_names: Sequence[str],
    catalog: Sequence[Script],
    comparer: ScriptNameComparer,
    log: UpgradeLog,
) -> list[RollbackStep]:
    """Compute the ordered rollback scripts for a downgrade.

    Args:
        script_to_rollback: Target script name; must already be journaled
        rollback_suffix: Token inserted before the extension of rollback scripts
        multiple_rollback: Cascading mode when True, single mode otherwise
        executed_script_names: Journal contents in chronological order
        catalog: Every discovered script
        comparer: Name comparer used for all matching
        log: Upgrade log

    Returns:
        Rollback steps in execution order

    Raises:
        RollbackTargetNotFoundError: If the target was never executed
    """
    journaled_target = next(
        (name for name in executed_script_names if comparer.equals(name, script_to_rollback)),
        None,
    )
    if journaled_target is None:
        raise RollbackTargetNotFoundError(script_to_rollback)

    if not multiple_rollback:
        name = rollback_script_name(journaled_target, rollback_suffix)
        script = find_script(catalog, name, comparer)
        if script is None:
            log.warning(f"Rollback script cannot be found: {name}")
            return []
        return [RollbackStep(script=script, forward_name=journaled_target)]

    # Everything journaled after the first occurrence of the target
    later: list[str] = []
    starting_point_passed = False
    for executed in executed_script_names:
        if starting_point_passed:
            later.append(executed)
        elif comparer.equals(executed, script_to_rollback):
            starting_point_passed = True

    # Run-always scripts are journaled once per run; undo each name once,
    # at its most recent position
    steps: list[RollbackStep] = []
    seen: list[str] = []
    for forward_name in reversed(later):
        if contains_name(seen, forward_name, comparer):
            continue
        seen.append(forward_name)
        script = find_script(catalog, rollback_script_name(forward_name, rollback_suffix), comparer)
        if script is not None:
            steps.append(RollbackStep(script=script, forward_name=forward_name))
    return steps
