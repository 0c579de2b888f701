"""Script name comparers.

The same comparer orders scripts and matches names against the journal,
so a case-insensitive engine treats ``V1.sql`` and ``v1.sql`` as one script
everywhere.
"""

from functools import cmp_to_key
from typing import Any, Callable


class OrdinalScriptNameComparer:
    """Orders names by code point, like plain ``str`` comparison."""

    def normalize(self, name: str) -> str:
        return name

    def compare(self, x: str, y: str) -> int:
        a, b = self.normalize(x), self.normalize(y)
        return (a > b) - (a < b)

    def equals(self, x: str, y: str) -> bool:
        return self.normalize(x) == self.normalize(y)

    def sort_key(self) -> Callable[[str], Any]:
        """Key function usable with ``sorted``."""
        return cmp_to_key(self.compare)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class CaseInsensitiveScriptNameComparer(OrdinalScriptNameComparer):
    """Orders and matches names ignoring case."""

    def normalize(self, name: str) -> str:
        return name.casefold()
