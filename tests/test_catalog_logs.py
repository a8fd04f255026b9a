"""Tests for the fail-safe catalog logger."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest import mock

import pytest

from catalog.handle import StoreHandle
from catalog.logs import FALLBACK_MARKER, FailSafeLogger, LogLevel
from catalog.schema import ensure_schema


NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


def _logger(tmp_path: Path, **kwargs) -> tuple[StoreHandle, FailSafeLogger]:
    handle = StoreHandle(tmp_path / "catalog.db")
    ensure_schema(handle)
    kwargs.setdefault("echo_console", False)
    logger = FailSafeLogger(handle, fallback_dir=tmp_path / "fallback", **kwargs)
    return handle, logger


def test_level_parse_accepts_names_and_numbers() -> None:
    assert LogLevel.parse("warn") is LogLevel.WARNING
    assert LogLevel.parse(" error ") is LogLevel.ERROR
    assert LogLevel.parse(10) is LogLevel.DEBUG
    assert LogLevel.DEBUG < LogLevel.INFO < LogLevel.WARNING < LogLevel.ERROR
    with pytest.raises(ValueError):
        LogLevel.parse("verbose")


def test_entries_below_minimum_level_are_dropped(tmp_path: Path) -> None:
    handle, logger = _logger(tmp_path, min_level="Warning")

    logger.log_entry("debug detail", LogLevel.DEBUG)
    logger.log_entry("info detail", LogLevel.INFO)
    logger.log_entry("warning detail", LogLevel.WARNING)
    logger.log_entry("error detail", LogLevel.ERROR)

    messages = {entry.message for entry in logger.query_history()}
    assert messages == {"warning detail", "error detail"}
    handle.close()


def test_store_failure_writes_fallback_file(tmp_path: Path) -> None:
    handle, logger = _logger(tmp_path, clock=lambda: NOW)
    with handle.locked() as conn:
        conn.execute("DROP TABLE catalog_logs")

    logger.log_entry("store is gone", LogLevel.ERROR, "compressor")

    fallback = tmp_path / "fallback" / "catalog-fallback-20240615.log"
    assert logger.fallback_path() == fallback
    content = fallback.read_text(encoding="utf-8")
    assert "store is gone" in content
    assert FALLBACK_MARKER in content
    assert content.startswith("2024-06-15T12:00:00Z")
    assert logger.query_history() == []
    handle.close()


def test_logger_without_store_uses_fallback(tmp_path: Path) -> None:
    logger = FailSafeLogger(None, fallback_dir=tmp_path / "fb", echo_console=False, clock=lambda: NOW)

    logger.warning("no store configured", "discovery")

    assert logger.query_history() == []
    assert "no store configured" in logger.fallback_path().read_text(encoding="utf-8")


def test_total_failure_never_raises(tmp_path: Path) -> None:
    logger = FailSafeLogger(None, fallback_dir=tmp_path / "fb", echo_console=True)

    with mock.patch.object(FailSafeLogger, "_write_fallback", side_effect=OSError("disk full")):
        logger.error("nowhere to go")

    with mock.patch.object(FailSafeLogger, "_write_store", side_effect=RuntimeError("boom")):
        logger.error("unexpected failure")


def test_query_history_filters(tmp_path: Path) -> None:
    clock_values = [NOW - timedelta(hours=2), NOW - timedelta(hours=1), NOW]
    current = {"value": clock_values[0]}
    handle, logger = _logger(tmp_path, min_level=LogLevel.DEBUG, clock=lambda: current["value"])

    for moment, (message, level, component) in zip(
        clock_values,
        [
            ("scan started", LogLevel.INFO, "discovery"),
            ("slow download", LogLevel.WARNING, "transfer"),
            ("scan finished", LogLevel.INFO, "discovery"),
        ],
    ):
        current["value"] = moment
        logger.log_entry(message, level, component)

    assert [entry.message for entry in logger.query_history()] == [
        "scan finished",
        "slow download",
        "scan started",
    ]
    assert [entry.message for entry in logger.query_history(level="warning")] == ["slow download"]
    assert [entry.message for entry in logger.query_history(component="discovery", limit=1)] == ["scan finished"]
    window = logger.query_history(start=NOW - timedelta(minutes=90), end=NOW - timedelta(minutes=30))
    assert [entry.message for entry in window] == ["slow download"]
    assert logger.query_history(level="nonsense") == []
    assert logger.query_history(limit=0) == []
    handle.close()


def test_prune_old_entries(tmp_path: Path) -> None:
    current = {"value": NOW - timedelta(days=45)}
    handle, logger = _logger(tmp_path, clock=lambda: current["value"], retention_days=30)
    logger.info("ancient")
    current["value"] = NOW - timedelta(days=2)
    logger.info("recent")
    old_fallback = logger.fallback_dir / "catalog-fallback-20240101.log"
    old_fallback.parent.mkdir(parents=True, exist_ok=True)
    old_fallback.write_text("old\n", encoding="utf-8")
    current["value"] = NOW

    assert logger.prune_old_entries() == 1

    assert [entry.message for entry in logger.query_history()] == ["recent"]
    assert not old_fallback.exists()
    handle.close()


def test_prune_failure_is_absorbed(tmp_path: Path) -> None:
    handle, logger = _logger(tmp_path)
    with handle.locked() as conn:
        conn.execute("DROP TABLE catalog_logs")

    assert logger.prune_old_entries(7) == 0
    handle.close()
