"""Table and index definitions for the catalog database."""
from __future__ import annotations

import logging
import sqlite3

from .config_store import config_table_ddl
from .errors import SchemaError
from .handle import StoreHandle

LOGGER = logging.getLogger("videoarchive.catalog.schema")

SCHEMA_VERSION = 1

_SCOPES_SCHEMA = """
CREATE TABLE IF NOT EXISTS scan_scopes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    mode TEXT NOT NULL,
    container_url TEXT NOT NULL,
    library_name TEXT,
    folder_path TEXT,
    recursive INTEGER NOT NULL DEFAULT 1,
    display_name TEXT,
    enabled INTEGER NOT NULL DEFAULT 1,
    created_utc TEXT NOT NULL,
    last_scanned_utc TEXT,
    video_count INTEGER NOT NULL DEFAULT 0,
    total_size_bytes INTEGER NOT NULL DEFAULT 0
);
"""

_ENTRIES_SCHEMA = """
CREATE TABLE IF NOT EXISTS catalog_entries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source_uri TEXT NOT NULL UNIQUE,
    container_url TEXT NOT NULL,
    container_name TEXT NOT NULL,
    path TEXT NOT NULL,
    filename TEXT NOT NULL,
    original_size_bytes INTEGER NOT NULL CHECK (original_size_bytes > 0),
    modified_utc TEXT,
    cataloged_utc TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'Cataloged',
    processing_started_utc TEXT,
    processing_completed_utc TEXT,
    compressed_size_bytes INTEGER,
    compression_ratio REAL,
    archive_path TEXT,
    archive_hash TEXT,
    original_hash TEXT,
    hash_verified INTEGER NOT NULL DEFAULT 0,
    original_duration_s REAL,
    compressed_duration_s REAL,
    integrity_verified INTEGER NOT NULL DEFAULT 0,
    retry_count INTEGER NOT NULL DEFAULT 0,
    last_error TEXT,
    scope_id INTEGER REFERENCES scan_scopes(id)
);
CREATE INDEX IF NOT EXISTS idx_entries_status ON catalog_entries(status);
CREATE INDEX IF NOT EXISTS idx_entries_cataloged ON catalog_entries(cataloged_utc, id);
CREATE INDEX IF NOT EXISTS idx_entries_scope ON catalog_entries(scope_id);
"""

_AUDIT_SCHEMA = """
CREATE TABLE IF NOT EXISTS audit_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    entry_id INTEGER NOT NULL REFERENCES catalog_entries(id),
    ts_utc TEXT NOT NULL,
    status TEXT NOT NULL,
    message TEXT
);
CREATE INDEX IF NOT EXISTS idx_audit_entry ON audit_log(entry_id, id);
CREATE INDEX IF NOT EXISTS idx_audit_ts ON audit_log(ts_utc);
"""

_LOGS_SCHEMA = """
CREATE TABLE IF NOT EXISTS catalog_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    ts_utc TEXT NOT NULL,
    level TEXT NOT NULL,
    component TEXT,
    message TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_logs_ts ON catalog_logs(ts_utc);
CREATE INDEX IF NOT EXISTS idx_logs_level ON catalog_logs(level);
"""


def ensure_schema(handle: StoreHandle) -> None:
    """Create every catalog table and index that does not exist yet."""

    try:
        with handle.locked() as conn:
            for script in (_SCOPES_SCHEMA, _ENTRIES_SCHEMA, _AUDIT_SCHEMA, _LOGS_SCHEMA, config_table_ddl()):
                conn.executescript(script)
            current = int(conn.execute("PRAGMA user_version").fetchone()[0])
            if current < SCHEMA_VERSION:
                conn.execute(f"PRAGMA user_version={SCHEMA_VERSION}")
    except SchemaError:
        raise
    except (sqlite3.Error, OSError) as exc:
        raise SchemaError(f"Cannot initialise catalog schema at {handle.db_path}: {exc}") from exc
    LOGGER.debug("Catalog schema ready at %s (version %s)", handle.db_path, SCHEMA_VERSION)


def schema_version(handle: StoreHandle) -> int:
    try:
        with handle.locked() as conn:
            return int(conn.execute("PRAGMA user_version").fetchone()[0])
    except sqlite3.Error as exc:
        raise SchemaError(str(exc)) from exc


__all__ = ["SCHEMA_VERSION", "ensure_schema", "schema_version"]
