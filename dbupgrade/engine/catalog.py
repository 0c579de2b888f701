"""Script catalog: discovery and deterministic ordering.

Provides:
- Aggregation of scripts from every configured provider
- Stable ordering by run group, then by name under the engine's comparer
- Lookup of catalog scripts by name
"""

import logging
from collections.abc import Iterable, Sequence
from typing import Optional

from .base import Script
from .protocols import ConnectionManager, ScriptNameComparer, ScriptProvider

logger = logging.getLogger(__name__)


def aggregate_scripts(
    providers: Iterable[ScriptProvider],
    connection_manager: ConnectionManager,
) -> list[Script]:
    """Collect scripts from all providers in provider order.

    Duplicate names across providers are passed through untouched.

    Args:
        providers: Script providers to query
        connection_manager: Passed to each provider

    Returns:
        Scripts in emission order
    """
    scripts: list[Script] = []
    for provider in providers:
        discovered = list(provider.get_scripts(connection_manager))
        logger.debug(f"{type(provider).__name__} discovered {len(discovered)} script(s)")
        scripts.extend(discovered)
    return scripts


def sequence_scripts(
    scripts: Iterable[Script],
    comparer: ScriptNameComparer,
) -> list[Script]:
    """Order scripts by run group, then by name.

    Both passes use Python's stable sort, so scripts that compare equal
    keep their emission order.

    Args:
        scripts: Unordered candidate scripts
        comparer: Name comparer shared with all name matching

    Returns:
        Scripts in execution order
    """
    name_key = comparer.sort_key()
    by_name = sorted(scripts, key=lambda s: name_key(s.name))
    return sorted(by_name, key=lambda s: s.run_group_order)


def find_script(
    scripts: Sequence[Script],
    name: str,
    comparer: ScriptNameComparer,
) -> Optional[Script]:
    """Return the first script whose name matches ``name``."""
    for script in scripts:
        if comparer.equals(script.name, name):
            return script
    return None


def contains_name(names: Iterable[str], name: str, comparer: ScriptNameComparer) -> bool:
    """Check whether ``name`` is in ``names`` under the comparer."""
    return any(comparer.equals(candidate, name) for candidate in names)
