"""Catalog export and failure report utilities."""
from __future__ import annotations

import csv
import json
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .store import CatalogStore
from .types import CatalogEntry, EntryStatus, format_ts, utc_now

EXPORT_FORMATS = ("jsonl", "csv")

_CSV_HEADERS = (
    "id",
    "source_uri",
    "container_name",
    "path",
    "filename",
    "original_size_bytes",
    "status",
    "cataloged_utc",
    "processing_started_utc",
    "processing_completed_utc",
    "compressed_size_bytes",
    "compression_ratio",
    "archive_path",
    "retry_count",
    "last_error",
    "scope_id",
)


def _timestamp_dir(base: Path, moment: Optional[datetime] = None) -> Path:
    timestamp = (moment or utc_now()).strftime("%Y%m%d_%H%M%SZ")
    target = base / "catalog" / timestamp
    target.mkdir(parents=True, exist_ok=True)
    return target


def _failure_json(entry: CatalogEntry) -> Dict[str, object]:
    return {
        "id": entry.id,
        "filename": entry.filename,
        "path": entry.path,
        "container_name": entry.container_name,
        "source_uri": entry.source_uri,
        "original_size_bytes": entry.original_size_bytes,
        "retry_count": entry.retry_count,
        "last_error": entry.last_error,
        "failed_utc": entry.processing_completed_utc,
    }


def build_failure_report(store: CatalogStore, *, max_retry_count: Optional[int] = None) -> Dict[str, object]:
    """Return the statistics and failed entries consumed by notifications.

    Nothing in the catalog is modified.
    """

    stats = store.compute_statistics()
    failed = store.failed_entries(max_retry_count=max_retry_count)
    return {
        "generated_utc": format_ts(utc_now()),
        "statistics": stats.as_dict(),
        "failed_count": len(failed),
        "failed": [_failure_json(entry) for entry in failed],
    }


def _write_jsonl(path: Path, rows: Iterable[Dict[str, object]]) -> int:
    count = 0
    with path.open("w", encoding="utf-8") as handle:
        for row in rows:
            handle.write(json.dumps(row, ensure_ascii=False) + "\n")
            count += 1
    return count


def _write_csv(path: Path, rows: Sequence[Dict[str, object]], headers: Sequence[str]) -> int:
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=list(headers))
        writer.writeheader()
        for row in rows:
            writer.writerow({key: row.get(key) for key in headers})
    return len(rows)


def export_entries(
    store: CatalogStore,
    exports_dir: Path,
    *,
    format: str = "jsonl",
    status: EntryStatus | str | None = None,
) -> List[Path]:
    format = format.lower()
    if format not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {format}")
    entries = store.query_entries(status)
    target_dir = _timestamp_dir(Path(exports_dir))
    rows = [entry.as_dict() for entry in entries]
    if format == "jsonl":
        path = target_dir / "catalog_entries.jsonl"
        _write_jsonl(path, rows)
    else:
        path = target_dir / "catalog_entries.csv"
        _write_csv(path, rows, _CSV_HEADERS)
    report_path = target_dir / "failure_report.json"
    with report_path.open("w", encoding="utf-8") as handle:
        json.dump(build_failure_report(store), handle, ensure_ascii=False, indent=2)
    return [path, report_path]


__all__ = ["EXPORT_FORMATS", "build_failure_report", "export_entries"]
