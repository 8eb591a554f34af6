"""
Overseer Errors

Exception hierarchy for the ETL engine. Every fatal condition an action can
hit is one of these; row and field level coercion issues are never raised,
they travel as Warning values instead.
"""

from __future__ import annotations


class EtlError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str, action: str | None = None):
        """
        Initialize engine error.

        Args:
            message: Error description
            action: Qualified name of the action that raised it, when known
        """
        self.action = action
        super().__init__(message)


class ConfigurationError(EtlError):
    """Configuration document, requested name or local option is invalid."""


class SourceUnavailable(EtlError):
    """Input file or directory is missing or unreadable."""

    def __init__(self, message: str, path: str | None = None, action: str | None = None):
        self.path = path
        super().__init__(message, action)


class MalformedInput(EtlError):
    """Structured input could be read but its content is not valid."""

    def __init__(self, message: str, path: str | None = None, action: str | None = None):
        self.path = path
        super().__init__(message, action)


class DiagnosticsUnavailable(EtlError):
    """Warning retrieval after a load failed, so the warning stream is unknown."""

    def __init__(self, message: str, table: str | None = None, action: str | None = None):
        self.table = table
        super().__init__(message, action)


class LoadFailed(EtlError):
    """The engine rejected a set-oriented load outright."""

    def __init__(
        self,
        message: str,
        table: str | None = None,
        code: int | None = None,
        action: str | None = None,
    ):
        """
        Initialize load failure.

        Args:
            message: Error description
            table: Destination table
            code: Engine error code, if the driver reported one
            action: Qualified action name
        """
        self.table = table
        self.code = code
        super().__init__(message, action)


class ConnectionLost(EtlError):
    """Connection to the target database dropped or could not be established."""

    def __init__(self, message: str, code: int | None = None, action: str | None = None):
        self.code = code
        super().__init__(message, action)
