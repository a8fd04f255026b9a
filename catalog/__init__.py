"""Video catalog, processing status tracking and fail-safe logging for VideoArchive."""
from __future__ import annotations

from .audit import AuditLog
from .config_store import ArchiveConfig, load_config, save_config, update_config
from .context import ArchiveContext, StartupOptions, open_context, resolve_startup_options
from .errors import CatalogError, LogWriteFailure, NotFoundError, SchemaError, StoreError
from .handle import StoreHandle
from .logs import FailSafeLogger, LogEntry, LogLevel
from .schema import ensure_schema
from .scopes import ScopeRegistry
from .store import CatalogStore
from .types import (
    AuditLogEntry,
    CatalogEntry,
    CatalogStatistics,
    EntryStatus,
    EntryUpdate,
    Scope,
    ScopeMode,
)

__all__ = [
    "ArchiveConfig",
    "ArchiveContext",
    "AuditLog",
    "AuditLogEntry",
    "CatalogEntry",
    "CatalogError",
    "CatalogStatistics",
    "CatalogStore",
    "EntryStatus",
    "EntryUpdate",
    "FailSafeLogger",
    "LogEntry",
    "LogLevel",
    "LogWriteFailure",
    "NotFoundError",
    "SchemaError",
    "Scope",
    "ScopeMode",
    "ScopeRegistry",
    "StartupOptions",
    "StoreError",
    "StoreHandle",
    "ensure_schema",
    "load_config",
    "open_context",
    "resolve_startup_options",
    "save_config",
    "update_config",
]
