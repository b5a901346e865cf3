"""Exceptions raised inside ClipKeep.

Every error carries an :class:`ErrorKind` so the command layer can turn it into
a typed failure without inspecting the class hierarchy.
"""

from typing import Optional

from clipkeep.models.results import ErrorKind


class ClipKeepError(Exception):
    """Base exception class for ClipKeep."""

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self):
        if self.original_error:
            return f"{self.message} (Caused by: {type(self.original_error).__name__}: {self.original_error})"
        return self.message


class InvalidInputError(ClipKeepError):
    """Raised when a command argument fails validation."""
    kind = ErrorKind.VALIDATION


class ItemNotFoundError(ClipKeepError):
    """Raised when an id or ip is no longer present."""
    kind = ErrorKind.NOT_FOUND


class PersistenceError(ClipKeepError):
    """Raised when the data file cannot be written."""
    kind = ErrorKind.PERSISTENCE


class ClipboardReadError(ClipKeepError):
    """Raised when the native clipboard cannot be opened or read."""
    kind = ErrorKind.CLIPBOARD


class ServiceNotReadyError(ClipKeepError):
    """Raised when a command needs state that initialize() has not set up."""
    kind = ErrorKind.STATE


class ConfigurationError(ClipKeepError):
    """Raised when the runtime configuration is invalid."""
    kind = ErrorKind.VALIDATION
