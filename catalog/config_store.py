"""Persistence of the single-row operational configuration."""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Optional, Tuple

from .errors import StoreError
from .handle import StoreHandle
from .types import format_ts, utc_now

LOGGER = logging.getLogger("videoarchive.catalog.config")

CONFIG_TABLE = "archive_config"


@dataclass(slots=True)
class ArchiveConfig:
    # source
    source_mode: str = "Single"
    tenant_url: Optional[str] = None
    site_url: Optional[str] = None
    library_name: str = "Documents"
    folder_path: str = ""
    recursive: bool = True
    file_extensions: str = ".mp4,.mov,.mkv,.avi,.wmv,.m4v"
    min_size_mb: int = 0
    # paths
    temp_dir: Optional[str] = None
    archive_root: Optional[str] = None
    # compression
    video_codec: str = "libx265"
    crf: int = 28
    preset: str = "medium"
    audio_bitrate_kbps: int = 128
    max_parallel: int = 1
    # retry
    max_retries: int = 3
    retry_delay_minutes: int = 30
    # resume
    resume_enabled: bool = True
    skip_completed: bool = True
    # notification
    notify_enabled: bool = False
    notify_sender: Optional[str] = None
    notify_recipients: Optional[str] = None
    notify_on_completion: bool = True
    notify_on_failure: bool = True
    # logging
    log_level: str = "INFO"
    log_console: bool = True
    log_retention_days: int = 30
    # advanced
    verify_hash: bool = True
    verify_integrity: bool = True
    duration_tolerance_s: float = 1.0
    delete_source_after_archive: bool = False
    dry_run: bool = False


# Stable field -> storage mapping. BOOL columns hold 0/1.
_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("source_mode", "TEXT"),
    ("tenant_url", "TEXT"),
    ("site_url", "TEXT"),
    ("library_name", "TEXT"),
    ("folder_path", "TEXT"),
    ("recursive", "BOOL"),
    ("file_extensions", "TEXT"),
    ("min_size_mb", "INTEGER"),
    ("temp_dir", "TEXT"),
    ("archive_root", "TEXT"),
    ("video_codec", "TEXT"),
    ("crf", "INTEGER"),
    ("preset", "TEXT"),
    ("audio_bitrate_kbps", "INTEGER"),
    ("max_parallel", "INTEGER"),
    ("max_retries", "INTEGER"),
    ("retry_delay_minutes", "INTEGER"),
    ("resume_enabled", "BOOL"),
    ("skip_completed", "BOOL"),
    ("notify_enabled", "BOOL"),
    ("notify_sender", "TEXT"),
    ("notify_recipients", "TEXT"),
    ("notify_on_completion", "BOOL"),
    ("notify_on_failure", "BOOL"),
    ("log_level", "TEXT"),
    ("log_console", "BOOL"),
    ("log_retention_days", "INTEGER"),
    ("verify_hash", "BOOL"),
    ("verify_integrity", "BOOL"),
    ("duration_tolerance_s", "REAL"),
    ("delete_source_after_archive", "BOOL"),
    ("dry_run", "BOOL"),
)

_KINDS: Dict[str, str] = dict(_COLUMNS)


def config_table_ddl() -> str:
    columns = ",\n    ".join(
        f"{name} {'INTEGER' if kind == 'BOOL' else kind}" for name, kind in _COLUMNS
    )
    return (
        f"CREATE TABLE IF NOT EXISTS {CONFIG_TABLE} (\n"
        "    id INTEGER PRIMARY KEY CHECK (id = 1),\n"
        f"    {columns},\n"
        "    updated_utc TEXT\n"
        ");\n"
    )


def _to_storage(config: ArchiveConfig) -> list[Any]:
    values: list[Any] = []
    for name, kind in _COLUMNS:
        value = getattr(config, name)
        if kind == "BOOL":
            value = 1 if value else 0
        values.append(value)
    return values


def _from_row(row: sqlite3.Row) -> ArchiveConfig:
    defaults = ArchiveConfig()
    values: Dict[str, Any] = {}
    for name, kind in _COLUMNS:
        value = row[name]
        if value is None and kind != "TEXT":
            value = getattr(defaults, name)
        elif kind == "BOOL":
            value = bool(int(value))
        values[name] = value
    return ArchiveConfig(**values)


def load_config(handle: StoreHandle) -> ArchiveConfig:
    """Return the stored configuration, or defaults when none was saved yet."""

    try:
        with handle.locked() as conn:
            row = conn.execute(f"SELECT * FROM {CONFIG_TABLE} WHERE id = 1").fetchone()
    except sqlite3.Error as exc:
        raise StoreError(f"Cannot read configuration: {exc}") from exc
    if row is None:
        return ArchiveConfig()
    return _from_row(row)


def save_config(handle: StoreHandle, config: ArchiveConfig, *, now: Optional[str] = None) -> None:
    names = [name for name, _ in _COLUMNS]
    placeholders = ",".join("?" for _ in range(len(names) + 2))
    updates = ",".join(f"{name}=excluded.{name}" for name in names)
    sql = (
        f"INSERT INTO {CONFIG_TABLE} (id, {', '.join(names)}, updated_utc) VALUES ({placeholders}) "
        f"ON CONFLICT(id) DO UPDATE SET {updates}, updated_utc=excluded.updated_utc"
    )
    params = [1, *_to_storage(config), now or format_ts(utc_now())]
    try:
        with handle.transaction() as conn:
            conn.execute(sql, params)
    except sqlite3.Error as exc:
        raise StoreError(f"Cannot save configuration: {exc}") from exc
    LOGGER.info("Configuration saved")


def update_config(handle: StoreHandle, **changes: Any) -> ArchiveConfig:
    unknown = sorted(key for key in changes if key not in _KINDS)
    if unknown:
        raise ValueError(f"Unknown configuration fields: {', '.join(unknown)}")
    current = load_config(handle)
    updated = replace(current, **changes)
    save_config(handle, updated)
    return updated


def config_as_dict(config: ArchiveConfig) -> Dict[str, Any]:
    return asdict(config)


__all__ = [
    "ArchiveConfig",
    "CONFIG_TABLE",
    "config_as_dict",
    "config_table_ddl",
    "load_config",
    "save_config",
    "update_config",
]
