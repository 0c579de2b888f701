"""Script providers.

Provides:
- StaticScriptProvider: scripts supplied in code
- FileSystemScriptProvider: *.sql files from a directory
- PackageScriptProvider: *.sql resources bundled in a Python package
"""

import logging
from collections.abc import Callable, Iterable
from importlib import resources
from pathlib import Path
from typing import Any, Optional

from .engine.base import ConfigurationError, Script, ScriptOptions

logger = logging.getLogger(__name__)


class StaticScriptProvider:
    """Returns a fixed list of scripts."""

    def __init__(self, scripts: Iterable[Script]):
        self._scripts = tuple(scripts)

    def get_scripts(self, connection_manager: Any) -> list[Script]:
        return list(self._scripts)


class FileSystemScriptProvider:
    """Discovers scripts from files in a directory.

    Script names are file names, or POSIX paths relative to the directory
    when subdirectories are included. Files are read on every call so
    edits between operations are picked up.
    """

    def __init__(
        self,
        directory: str | Path,
        pattern: str = "*.sql",
        include_subdirectories: bool = False,
        encoding: str = "utf-8",
        options: Optional[ScriptOptions] = None,
        file_filter: Optional[Callable[[Path], bool]] = None,
    ):
        """Initialize the provider.

        Args:
            directory: Directory holding the scripts
            pattern: Glob pattern selecting script files
            include_subdirectories: Search subdirectories recursively
            encoding: Text encoding of the script files
            options: Options applied to every discovered script
            file_filter: Optional predicate to skip files
        """
        self.directory = Path(directory)
        self.pattern = pattern
        self.include_subdirectories = include_subdirectories
        self.encoding = encoding
        self.options = options or ScriptOptions()
        self.file_filter = file_filter

    def get_scripts(self, connection_manager: Any) -> list[Script]:
        if not self.directory.is_dir():
            raise ConfigurationError(f"Script directory does not exist: {self.directory}")

        paths = (
            self.directory.rglob(self.pattern)
            if self.include_subdirectories
            else self.directory.glob(self.pattern)
        )

        scripts = []
        for path in sorted(paths):
            if not path.is_file():
                continue
            if self.file_filter is not None and not self.file_filter(path):
                continue

            name = (
                path.relative_to(self.directory).as_posix()
                if self.include_subdirectories
                else path.name
            )
            scripts.append(
                Script(
                    name=name,
                    contents=path.read_text(encoding=self.encoding),
                    options=self.options,
                )
            )

        logger.debug(f"Found {len(scripts)} script(s) in {self.directory}")
        return scripts


class PackageScriptProvider:
    """Discovers scripts bundled as resources of a Python package.

    Usage:
        provider = PackageScriptProvider("myapp.sql")
    """

    def __init__(
        self,
        package: str,
        suffix: str = ".sql",
        encoding: str = "utf-8",
        options: Optional[ScriptOptions] = None,
    ):
        """Initialize the provider.

        Args:
            package: Dotted name of the package holding the scripts
            suffix: File suffix selecting script resources
            encoding: Text encoding of the resources
            options: Options applied to every discovered script
        """
        self.package = package
        self.suffix = suffix
        self.encoding = encoding
        self.options = options or ScriptOptions()

    def get_scripts(self, connection_manager: Any) -> list[Script]:
        root = resources.files(self.package)
        entries = sorted(
            (
                entry
                for entry in root.iterdir()
                if entry.is_file() and entry.name.endswith(self.suffix)
            ),
            key=lambda entry: entry.name,
        )
        return [
            Script(
                name=entry.name,
                contents=entry.read_text(encoding=self.encoding),
                options=self.options,
            )
            for entry in entries
        ]
