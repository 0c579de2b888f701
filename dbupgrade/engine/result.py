"""Result of a public engine operation."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Optional

from .base import Script, format_error


@dataclass(frozen=True)
class UpgradeResult:
    """Outcome of an upgrade, downgrade or mark-as-executed operation.

    Attributes:
        scripts: Scripts fully processed, in the order they were processed
        successful: Whether the operation completed without a fault
        error: Fault that stopped the operation, if any
        error_script: Name of the script in flight when the fault occurred
    """

    scripts: tuple[Script, ...] = field(default_factory=tuple)
    successful: bool = True
    error: Optional[BaseException] = None
    error_script: Optional[str] = None

    @classmethod
    def succeeded(cls, scripts: Iterable[Script]) -> "UpgradeResult":
        return cls(scripts=tuple(scripts), successful=True)

    @classmethod
    def failed(
        cls,
        scripts: Iterable[Script],
        error: BaseException,
        error_script: Optional[str] = None,
    ) -> "UpgradeResult":
        return cls(
            scripts=tuple(scripts),
            successful=False,
            error=error,
            error_script=error_script,
        )

    @property
    def script_names(self) -> list[str]:
        return [s.name for s in self.scripts]

    @property
    def error_message(self) -> Optional[str]:
        return format_error(self.error)
