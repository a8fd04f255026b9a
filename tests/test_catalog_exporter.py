from __future__ import annotations

import csv
import json
from pathlib import Path

import pytest

from catalog.exporter import build_failure_report, export_entries
from catalog.handle import StoreHandle
from catalog.schema import ensure_schema
from catalog.store import CatalogStore
from catalog.types import EntryStatus, EntryUpdate


def _store(tmp_path: Path) -> tuple[StoreHandle, CatalogStore]:
    handle = StoreHandle(tmp_path / "catalog.db")
    ensure_schema(handle)
    store = CatalogStore(handle)
    for index, name in enumerate(["ok.mp4", "broken.mp4", "waiting.mp4"], start=1):
        store.add_entry(f"uri://lib/{name}", "uri://site", "Videos", "/", name, index * 1000)
    store.transition_status(1, EntryStatus.COMPLETED, EntryUpdate(compressed_size_bytes=400))
    store.transition_status(2, EntryStatus.FAILED, EntryUpdate(retry_count=4, last_error="ffmpeg exited 1"))
    return handle, store


def test_failure_report_lists_failed_entries(tmp_path: Path) -> None:
    handle, store = _store(tmp_path)

    report = build_failure_report(store)

    assert report["failed_count"] == 1
    failed = report["failed"][0]
    assert failed["filename"] == "broken.mp4"
    assert failed["last_error"] == "ffmpeg exited 1"
    assert failed["retry_count"] == 4
    assert report["statistics"]["total_cataloged"] == 3
    assert report["statistics"]["space_saved"] == 600

    assert build_failure_report(store, max_retry_count=3)["failed_count"] == 0
    handle.close()


def test_export_jsonl_and_csv(tmp_path: Path) -> None:
    handle, store = _store(tmp_path)
    exports = tmp_path / "exports"

    jsonl_path, report_path = export_entries(store, exports)
    rows = [json.loads(line) for line in jsonl_path.read_text(encoding="utf-8").splitlines()]
    assert [row["filename"] for row in rows] == ["ok.mp4", "broken.mp4", "waiting.mp4"]
    assert json.loads(report_path.read_text(encoding="utf-8"))["failed_count"] == 1

    csv_path, _ = export_entries(store, exports, format="csv", status="Failed")
    with csv_path.open(encoding="utf-8", newline="") as handle_csv:
        records = list(csv.DictReader(handle_csv))
    assert [record["filename"] for record in records] == ["broken.mp4"]

    with pytest.raises(ValueError):
        export_entries(store, exports, format="xml")
    handle.close()
