"""Exception types used across repofan.

Call-level failures (bad arguments, unknown targets, missing commands) are
raised. Per-target failures during a dispatch are stored in the target's
outcome instead.
"""

from __future__ import annotations


class RepofanError(Exception):
    """Base class for all repofan specific errors."""


class ParseError(RepofanError):
    """Raised when a git config source cannot be read or used."""

    def __init__(self, message: str, source: str | None = None, line: int | None = None):
        self.source = source
        self.line = line
        location = source or ""
        if line is not None:
            location = f"{location}:{line}"
        super().__init__(f"{location}: {message}" if location else message)


class NotFoundError(RepofanError):
    """Raised when a named item does not exist."""


class TargetNotFoundError(NotFoundError):
    """Raised when no target in the registry has the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Repository not found: {name}")


class ConfigKeyError(NotFoundError, KeyError):
    """Raised when a dotted key path does not resolve in a config tree."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")

    def __str__(self) -> str:
        # KeyError would repr() the message
        return f"{self.path}: {self.reason}"


class MissingCommandError(RepofanError):
    """Raised when a dispatch is requested without a command."""

    def __init__(self, message: str = "Missing command to execute"):
        super().__init__(message)


class ExternalCommandError(RepofanError):
    """A command failed for one target (spawn failure or non-zero exit)."""

    def __init__(self, message: str, returncode: int | None = None):
        self.returncode = returncode
        super().__init__(message)


class RegistryError(RepofanError):
    """Raised when the repository store cannot be read or is malformed."""
