from __future__ import annotations

from dataclasses import fields
from pathlib import Path

import pytest

from catalog import config_store
from catalog.config_store import ArchiveConfig, load_config, save_config, update_config
from catalog.handle import StoreHandle
from catalog.schema import ensure_schema


def _handle(tmp_path: Path) -> StoreHandle:
    handle = StoreHandle(tmp_path / "catalog.db")
    ensure_schema(handle)
    return handle


def test_storage_mapping_covers_every_field() -> None:
    assert [name for name, _ in config_store._COLUMNS] == [item.name for item in fields(ArchiveConfig)]


def test_load_returns_defaults_when_nothing_saved(tmp_path: Path) -> None:
    handle = _handle(tmp_path)
    assert load_config(handle) == ArchiveConfig()
    handle.close()


def test_save_and_reload_round_trip(tmp_path: Path) -> None:
    handle = _handle(tmp_path)
    config = ArchiveConfig(
        source_mode="Site",
        site_url="https://contoso.example/sites/media",
        recursive=False,
        crf=30,
        duration_tolerance_s=2.5,
        notify_enabled=True,
        notify_recipients="ops@contoso.example",
        dry_run=True,
    )
    save_config(handle, config)
    save_config(handle, config)

    loaded = load_config(handle)
    assert loaded == config
    assert loaded.recursive is False
    assert loaded.dry_run is True
    with handle.locked() as conn:
        row = conn.execute("SELECT COUNT(*), dry_run FROM archive_config").fetchone()
    assert row[0] == 1
    assert row[1] == 1
    handle.close()


def test_update_config_changes_selected_fields(tmp_path: Path) -> None:
    handle = _handle(tmp_path)
    updated = update_config(handle, max_retries=5, verify_hash=False)

    assert updated.max_retries == 5
    assert load_config(handle).verify_hash is False
    assert load_config(handle).crf == ArchiveConfig().crf

    with pytest.raises(ValueError):
        update_config(handle, not_a_setting=1)
    handle.close()
