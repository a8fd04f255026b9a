"""Explicit wiring of the catalog components from startup options."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from core.paths import get_catalog_db_path, get_fallback_logs_dir

from .audit import AuditLog
from .config_store import ArchiveConfig, load_config
from .handle import StoreHandle
from .logs import FailSafeLogger, LogLevel
from .schema import ensure_schema
from .scopes import ScopeRegistry
from .store import CatalogStore

LOGGER = logging.getLogger("videoarchive.catalog.context")


@dataclass(slots=True)
class StartupOptions:
    """Values read once at startup; nothing re-reads them afterwards."""

    db_path: Path
    fallback_dir: Path
    log_level: LogLevel = LogLevel.INFO
    console_echo: bool = True
    retention_days: int = 30
    audit_retention_days: int = 365


def _path_or_default(value: Any, default: Path) -> Path:
    if isinstance(value, str) and value.strip():
        return Path(value).expanduser()
    return default


def resolve_startup_options(settings: Mapping[str, Any], working_dir: Path) -> StartupOptions:
    logging_cfg: Dict[str, Any] = dict(settings.get("logging") or {})
    audit_cfg: Dict[str, Any] = dict(settings.get("audit") or {})
    try:
        level = LogLevel.parse(logging_cfg.get("level", "INFO"))
    except ValueError:
        LOGGER.warning("Unknown log level %r, using INFO", logging_cfg.get("level"))
        level = LogLevel.INFO
    return StartupOptions(
        db_path=_path_or_default(settings.get("catalog_db"), get_catalog_db_path(working_dir)),
        fallback_dir=_path_or_default(logging_cfg.get("fallback_dir"), get_fallback_logs_dir(working_dir)),
        log_level=level,
        console_echo=bool(logging_cfg.get("console", True)),
        retention_days=max(0, int(logging_cfg.get("retention_days", 30))),
        audit_retention_days=max(0, int(audit_cfg.get("retention_days", 365))),
    )


@dataclass(slots=True)
class ArchiveContext:
    """Everything a pipeline run needs, passed around instead of globals."""

    options: StartupOptions
    handle: StoreHandle
    logger: FailSafeLogger
    audit: AuditLog
    catalog: CatalogStore
    scopes: ScopeRegistry

    def config(self) -> ArchiveConfig:
        return load_config(self.handle)

    def prune(self) -> Dict[str, int]:
        removed = {
            "logs": self.logger.prune_old_entries(self.options.retention_days),
            "audit": self.audit.prune(self.options.audit_retention_days),
        }
        if any(removed.values()):
            self.handle.optimize()
        return removed

    def close(self) -> None:
        self.handle.close()

    def __enter__(self) -> "ArchiveContext":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()


def open_context(options: StartupOptions, *, handle: Optional[StoreHandle] = None) -> ArchiveContext:
    """Open the store, make sure the schema exists and build every component.

    Raises :class:`~catalog.errors.SchemaError` when the store cannot be
    initialised.
    """

    handle = handle or StoreHandle(options.db_path)
    ensure_schema(handle)
    logger = FailSafeLogger(
        handle,
        fallback_dir=options.fallback_dir,
        min_level=options.log_level,
        echo_console=options.console_echo,
        retention_days=options.retention_days,
    )
    audit = AuditLog(handle)
    context = ArchiveContext(
        options=options,
        handle=handle,
        logger=logger,
        audit=audit,
        catalog=CatalogStore(handle, audit=audit, event_log=logger),
        scopes=ScopeRegistry(handle, event_log=logger),
    )
    LOGGER.info("Catalog store ready at %s", options.db_path)
    return context


__all__ = ["ArchiveContext", "StartupOptions", "open_context", "resolve_startup_options"]
