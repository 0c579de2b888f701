"""Upgrade log implementations.

The engine reports progress through the ``UpgradeLog`` protocol.
``LoggingUpgradeLog`` forwards to the standard ``logging`` module with
secrets redacted; ``NullUpgradeLog`` discards everything.
"""

import logging
import re
from typing import Optional


class SecretsRedactor:
    """Redact secrets from log messages.

    Script variables and connection strings often carry credentials;
    they are masked before reaching any log handler.
    """

    PATTERNS = [
        # Passwords in connection strings and key=value pairs
        (r'(?i)(password|passwd|pwd)["\s:=]+["\']?([^\s;"\']+)["\']?', r"\1=***REDACTED***"),
        # Secrets and tokens
        (r'(?i)(secret|token)["\s:=]+["\']?([a-zA-Z0-9_\-]{10,})["\']?', r"\1=***REDACTED***"),
        # Bearer tokens
        (r"(?i)(bearer\s+)([a-zA-Z0-9_\-\.]+)", r"\1***REDACTED***"),
        # user:password@host URLs
        (r"(://[^:/\s]+:)([^@\s]+)(@)", r"\1***REDACTED***\3"),
    ]

    def __init__(self):
        """Initialize with compiled patterns."""
        self._compiled_patterns = [
            (re.compile(pattern), replacement) for pattern, replacement in self.PATTERNS
        ]

    def redact(self, message: str) -> str:
        """Redact sensitive information from message.

        Args:
            message: The log message that may contain secrets

        Returns:
            The message with secrets redacted
        """
        for pattern, replacement in self._compiled_patterns:
            message = pattern.sub(replacement, message)
        return message


class LoggingUpgradeLog:
    """Forwards upgrade messages to a ``logging.Logger``."""

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        redact_secrets: bool = True,
    ):
        """Initialize the log.

        Args:
            logger: Target logger (defaults to the "dbupgrade" logger)
            redact_secrets: Mask credentials before logging
        """
        self.logger = logger or logging.getLogger("dbupgrade")
        self._redactor = SecretsRedactor() if redact_secrets else None

    def _prepare(self, message: str) -> str:
        if self._redactor is None:
            return message
        return self._redactor.redact(message)

    def info(self, message: str) -> None:
        self.logger.info(self._prepare(message))

    def warning(self, message: str) -> None:
        self.logger.warning(self._prepare(message))

    def error(self, message: str) -> None:
        self.logger.error(self._prepare(message))


class NullUpgradeLog:
    """Discards all messages."""

    def info(self, message: str) -> None:
        pass

    def warning(self, message: str) -> None:
        pass

    def error(self, message: str) -> None:
        pass
