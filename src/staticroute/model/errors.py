from __future__ import annotations


class StaticRouteError(RuntimeError):
    """Base class for errors raised by staticroute components."""


class ConfigAccessError(StaticRouteError):
    """A configuration or state store could not be read, written or locked."""


class CommandExecutionError(StaticRouteError):
    def __init__(self, message: str, returncode: int | None = None, signal: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.signal = signal


class MalformedRecord(StaticRouteError, ValueError):
    """A persisted route record is missing required fields."""
