"""Common dataclasses shared across catalog modules."""
from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

TS_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_ts(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(TS_FORMAT)


def cutoff_ts(moment: datetime, days: float) -> str:
    return format_ts(moment - timedelta(days=days))


class EntryStatus(str, Enum):
    CATALOGED = "Cataloged"
    DOWNLOADING = "Downloading"
    COMPRESSING = "Compressing"
    VERIFYING = "Verifying"
    COMPLETED = "Completed"
    FAILED = "Failed"


# Statuses a crashed run can leave behind mid-pipeline.
IN_FLIGHT_STATUSES = (
    EntryStatus.DOWNLOADING.value,
    EntryStatus.COMPRESSING.value,
    EntryStatus.VERIFYING.value,
)


class ScopeMode(str, Enum):
    SINGLE = "Single"
    SITE = "Site"
    MULTIPLE = "Multiple"
    TENANT = "Tenant"


def status_text(value: "EntryStatus | str") -> str:
    text = value.value if isinstance(value, EntryStatus) else str(value or "").strip()
    if not text:
        raise ValueError("status must be a non-empty string")
    return text


def _as_bool(value: Any) -> bool:
    return bool(int(value)) if value is not None else False


@dataclass(slots=True)
class CatalogEntry:
    """One remote video tracked through the archive pipeline."""

    id: int
    source_uri: str
    container_url: str
    container_name: str
    path: str
    filename: str
    original_size_bytes: int
    modified_utc: Optional[str]
    cataloged_utc: str
    status: str
    processing_started_utc: Optional[str] = None
    processing_completed_utc: Optional[str] = None
    compressed_size_bytes: Optional[int] = None
    compression_ratio: Optional[float] = None
    archive_path: Optional[str] = None
    archive_hash: Optional[str] = None
    original_hash: Optional[str] = None
    hash_verified: bool = False
    original_duration_s: Optional[float] = None
    compressed_duration_s: Optional[float] = None
    integrity_verified: bool = False
    retry_count: int = 0
    last_error: Optional[str] = None
    scope_id: Optional[int] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "CatalogEntry":
        return cls(
            id=int(row["id"]),
            source_uri=row["source_uri"],
            container_url=row["container_url"],
            container_name=row["container_name"],
            path=row["path"],
            filename=row["filename"],
            original_size_bytes=int(row["original_size_bytes"]),
            modified_utc=row["modified_utc"],
            cataloged_utc=row["cataloged_utc"],
            status=row["status"],
            processing_started_utc=row["processing_started_utc"],
            processing_completed_utc=row["processing_completed_utc"],
            compressed_size_bytes=row["compressed_size_bytes"],
            compression_ratio=row["compression_ratio"],
            archive_path=row["archive_path"],
            archive_hash=row["archive_hash"],
            original_hash=row["original_hash"],
            hash_verified=_as_bool(row["hash_verified"]),
            original_duration_s=row["original_duration_s"],
            compressed_duration_s=row["compressed_duration_s"],
            integrity_verified=_as_bool(row["integrity_verified"]),
            retry_count=int(row["retry_count"] or 0),
            last_error=row["last_error"],
            scope_id=row["scope_id"],
        )

    def as_dict(self) -> Dict[str, Any]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


@dataclass(slots=True)
class EntryUpdate:
    """Typed partial update merged into a catalog row.

    Only fields that are not ``None`` are written. ``retry_count`` can only
    raise the stored counter.
    """

    compressed_size_bytes: Optional[int] = None
    compression_ratio: Optional[float] = None
    archive_path: Optional[str] = None
    archive_hash: Optional[str] = None
    original_hash: Optional[str] = None
    hash_verified: Optional[bool] = None
    original_duration_s: Optional[float] = None
    compressed_duration_s: Optional[float] = None
    integrity_verified: Optional[bool] = None
    retry_count: Optional[int] = None
    last_error: Optional[str] = None

    def assignments(self) -> tuple[list[str], list[Any]]:
        """Return ``SET`` fragments and their parameters for the populated fields."""

        clauses: list[str] = []
        params: list[Any] = []
        for item in fields(self):
            value = getattr(self, item.name)
            if value is None:
                continue
            if item.name == "retry_count":
                clauses.append("retry_count = MAX(retry_count, ?)")
                params.append(int(value))
                continue
            if isinstance(value, bool):
                value = 1 if value else 0
            clauses.append(f"{item.name} = ?")
            params.append(value)
        return clauses, params

    def is_empty(self) -> bool:
        return all(getattr(self, item.name) is None for item in fields(self))


@dataclass(slots=True)
class AuditLogEntry:
    id: int
    entry_id: int
    ts_utc: str
    status: str
    message: Optional[str]

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "AuditLogEntry":
        return cls(
            id=int(row["id"]),
            entry_id=int(row["entry_id"]),
            ts_utc=row["ts_utc"],
            status=row["status"],
            message=row["message"],
        )


@dataclass(slots=True)
class Scope:
    """A named scan target and its cached catalog totals."""

    id: int
    mode: str
    container_url: str
    library_name: str
    folder_path: str
    recursive: bool
    display_name: str
    enabled: bool
    created_utc: str
    last_scanned_utc: Optional[str] = None
    video_count: int = 0
    total_size_bytes: int = 0

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Scope":
        return cls(
            id=int(row["id"]),
            mode=row["mode"],
            container_url=row["container_url"],
            library_name=row["library_name"] or "",
            folder_path=row["folder_path"] or "",
            recursive=_as_bool(row["recursive"]),
            display_name=row["display_name"] or "",
            enabled=_as_bool(row["enabled"]),
            created_utc=row["created_utc"],
            last_scanned_utc=row["last_scanned_utc"],
            video_count=int(row["video_count"] or 0),
            total_size_bytes=int(row["total_size_bytes"] or 0),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


@dataclass(slots=True)
class CatalogStatistics:
    """Aggregate numbers handed to the notification collaborator.

    ``space_saved`` and ``average_compression_ratio`` stay ``None`` until at
    least one completed entry carries both an original and a compressed size,
    so "no data" is distinguishable from "zero savings".
    """

    total_cataloged: int = 0
    by_status: Dict[str, int] = field(default_factory=dict)
    total_original_size: int = 0
    total_compressed_size: int = 0
    space_saved: Optional[int] = None
    average_compression_ratio: Optional[float] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total_cataloged": self.total_cataloged,
            "by_status": dict(self.by_status),
            "total_original_size": self.total_original_size,
            "total_compressed_size": self.total_compressed_size,
            "space_saved": self.space_saved,
            "average_compression_ratio": self.average_compression_ratio,
        }


__all__ = [
    "AuditLogEntry",
    "CatalogEntry",
    "CatalogStatistics",
    "EntryStatus",
    "EntryUpdate",
    "IN_FLIGHT_STATUSES",
    "Scope",
    "ScopeMode",
    "TS_FORMAT",
    "cutoff_ts",
    "format_ts",
    "status_text",
    "utc_now",
]
