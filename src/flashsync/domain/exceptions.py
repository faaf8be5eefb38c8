"""Exceptions raised at the sync boundary.

The engines themselves never raise on validated input.
"""


class FlashsyncError(Exception):
    """Base class for flashsync errors."""


class InvalidScopeCodeError(FlashsyncError, ValueError):
    """The scope (session) code is not a six-digit string."""

    def __init__(self, code: str):
        super().__init__(f"Invalid code: {code!r}")
        self.code = code


class StorageUnavailableError(FlashsyncError):
    """The snapshot store could not be read or written."""


class CatalogUnavailableError(FlashsyncError):
    """The card catalog could not be read or parsed."""
