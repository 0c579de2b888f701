"""Engine settings.

Environment-based configuration for the SQLite-backed engine and the
command line.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from .engine.configuration import VARIABLE_NAME_PATTERN
from .sqlite.executor import TransactionMode
from .sqlite.journal import TABLE_NAME_PATTERN


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass
class EngineSettings:
    """Engine settings.

    Attributes:
        database: Path to the SQLite database file
        scripts_dir: Directory holding upgrade and rollback scripts
        journal_table: Table recording executed scripts
        rollback_suffix: Suffix marking rollback scripts (V1.sql -> V1_rollback.sql)
        case_insensitive: Compare script names ignoring case
        include_subdirectories: Discover scripts in subdirectories too
        transaction_mode: Transaction handling for script execution
        connect_timeout: Seconds to wait for a locked database
        variables: Values substituted for $name$ tokens in scripts
    """

    database: str = field(default_factory=lambda: os.getenv("DBUPGRADE_DATABASE", "dbupgrade.db"))
    scripts_dir: str = field(default_factory=lambda: os.getenv("DBUPGRADE_SCRIPTS_DIR", "scripts"))
    journal_table: str = field(
        default_factory=lambda: os.getenv("DBUPGRADE_JOURNAL_TABLE", "schema_versions")
    )
    rollback_suffix: str = field(
        default_factory=lambda: os.getenv("DBUPGRADE_ROLLBACK_SUFFIX", "_rollback")
    )
    case_insensitive: bool = field(default_factory=lambda: _env_flag("DBUPGRADE_CASE_INSENSITIVE"))
    include_subdirectories: bool = field(
        default_factory=lambda: _env_flag("DBUPGRADE_INCLUDE_SUBDIRECTORIES")
    )
    transaction_mode: TransactionMode = field(
        default_factory=lambda: TransactionMode(
            os.getenv("DBUPGRADE_TRANSACTION_MODE", TransactionMode.TRANSACTION_PER_SCRIPT.value)
        )
    )
    connect_timeout: float = field(
        default_factory=lambda: float(os.getenv("DBUPGRADE_CONNECT_TIMEOUT", "5.0"))
    )
    variables: dict[str, str] = field(default_factory=dict)

    def validate(self) -> list[str]:
        """Validate settings.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not self.database:
            errors.append("DBUPGRADE_DATABASE is required")

        if not self.scripts_dir:
            errors.append("DBUPGRADE_SCRIPTS_DIR is required")

        if not TABLE_NAME_PATTERN.match(self.journal_table or ""):
            errors.append(f"Invalid journal table name: {self.journal_table!r}")

        if not self.rollback_suffix:
            errors.append("DBUPGRADE_ROLLBACK_SUFFIX must not be empty")

        if self.connect_timeout <= 0:
            errors.append("DBUPGRADE_CONNECT_TIMEOUT must be positive")

        for name in self.variables:
            if not VARIABLE_NAME_PATTERN.match(name):
                errors.append(f"Invalid variable name: {name!r}")

        return errors


# Global settings instance
_settings: Optional[EngineSettings] = None


def get_settings() -> EngineSettings:
    """Get the global engine settings.

    Returns:
        EngineSettings instance
    """
    global _settings
    if _settings is None:
        _settings = EngineSettings()
    return _settings


def set_settings(settings: Optional[EngineSettings]) -> None:
    """Set the global engine settings.

    Args:
        settings: Settings to use, or None to reload from the environment
    """
    global _settings
    _settings = settings


def parse_variables(assignments: list[str]) -> dict[str, str]:
    """Parse ``NAME=VALUE`` assignments into a dict.

    Raises:
        ValueError: If an assignment has no ``=``
    """
    variables = {}
    for assignment in assignments:
        name, sep, value = assignment.partition("=")
        if not sep:
            raise ValueError(f"Variable must be NAME=VALUE: {assignment!r}")
        variables[name.strip()] = value
    return variables
