"""Errors raised by the reloader.

Failures raised while executing a module are never wrapped: they are
rolled back and re-raised unchanged to the importer.
"""


class AutoReloaderError(Exception):
    """Base class for reloader errors."""


class AlreadyActivatedError(AutoReloaderError):
    """Raised when activate() is called more than once."""

    def __init__(self) -> None:
        super().__init__("AutoReloader can only be activated once")


class NotActivatedError(AutoReloaderError):
    """Raised when the reloader is used before activate()."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"AutoReloader must be activated before calling {operation}()")


class InvalidUsageError(AutoReloaderError):
    """Raised when an operation is called with inconsistent arguments."""
