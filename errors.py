"""Exception taxonomy for the tool inventory.

Every failure the inventory service reports to callers is an
``InventoryError`` subclass. Each class carries the HTTP status code the
API layer answers with, so routers never branch on exception types.
Infrastructure failures (an unreachable database) are not wrapped and
propagate unchanged.
"""

from __future__ import annotations


class InventoryError(Exception):
    """Base exception for inventory errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(InventoryError):
    """Raised when input is blank, malformed or unsafe."""

    status_code = 400


class NotFoundError(InventoryError):
    """Raised when a referenced location, tool or image does not exist."""

    status_code = 404


class ConflictError(InventoryError):
    """Raised when a write would break location parent integrity."""

    status_code = 409


class AssetWriteError(InventoryError):
    """Raised when an uploaded image cannot be written to disk."""


class IndexSyncError(InventoryError):
    """Raised when the search index cannot follow a row mutation."""
