from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

from catalog.audit import AuditLog
from catalog.handle import StoreHandle
from catalog.schema import ensure_schema
from catalog.store import CatalogStore


def _setup(tmp_path: Path) -> tuple[StoreHandle, CatalogStore, int]:
    handle = StoreHandle(tmp_path / "catalog.db")
    ensure_schema(handle)
    store = CatalogStore(handle)
    store.add_entry("uri://site/lib/a.mp4", "uri://site", "lib", "/", "a.mp4", 500)
    entry = store.find_by_source("uri://site/lib/a.mp4")
    assert entry is not None
    return handle, store, entry.id


def test_append_annotates_without_status_change(tmp_path: Path) -> None:
    handle, store, entry_id = _setup(tmp_path)
    audit = AuditLog(handle)

    assert audit.append(entry_id, "Cataloged", "Operator note") is True

    rows = audit.history(entry_id)
    assert [row.status for row in rows] == ["Cataloged", "Cataloged"]
    assert rows[-1].message == "Operator note"
    assert store.get_entry(entry_id).status == "Cataloged"
    handle.close()


def test_append_failure_returns_false(tmp_path: Path) -> None:
    handle, _store, _entry_id = _setup(tmp_path)
    audit = AuditLog(handle)

    # entry_id has a foreign key to catalog_entries
    assert audit.append(424242, "Failed", "orphan") is False
    assert audit.append(1, "", "empty status") is False
    assert len(audit.recent()) == 1
    handle.close()


def test_recent_is_newest_first(tmp_path: Path) -> None:
    handle, store, entry_id = _setup(tmp_path)
    store.transition_status(entry_id, "Downloading")
    store.transition_status(entry_id, "Compressing")

    recent = store.audit.recent(limit=1)
    assert [row.status for row in recent] == ["Compressing"]
    handle.close()


def test_prune_removes_rows_past_retention(tmp_path: Path) -> None:
    handle, _store, entry_id = _setup(tmp_path)
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    audit = AuditLog(handle, clock=lambda: now)
    audit.append(entry_id, "Downloading", "old", ts="2023-01-01T00:00:00Z")
    audit.append(entry_id, "Compressing", "fresh", ts=(now - timedelta(days=1)).strftime("%Y-%m-%dT%H:%M:%SZ"))

    assert audit.prune(30) == 1
    messages = [row.message for row in audit.history(entry_id)]
    assert "fresh" in messages
    assert "old" not in messages
    handle.close()
