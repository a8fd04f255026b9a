"""Error hierarchy for catalog operations."""
from __future__ import annotations


class CatalogError(RuntimeError):
    """Base exception for catalog store failures."""


class SchemaError(CatalogError):
    """Raised when the catalog store cannot be opened or initialised."""


class NotFoundError(CatalogError, LookupError):
    """Raised when an operation references an unknown entry or scope id."""


class StoreError(CatalogError):
    """Raised when a catalog or scope write fails at the SQLite level."""


class LogWriteFailure(CatalogError):
    """Raised internally by the fail-safe logger when the store write fails."""


__all__ = ["CatalogError", "LogWriteFailure", "NotFoundError", "SchemaError", "StoreError"]
