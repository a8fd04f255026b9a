from __future__ import annotations

from pathlib import Path
from unittest import mock

import pytest

from catalog.errors import SchemaError
from catalog.handle import StoreHandle
from catalog.schema import SCHEMA_VERSION, ensure_schema, schema_version
from core import db as core_db


def test_ensure_schema_is_idempotent(tmp_path: Path) -> None:
    handle = StoreHandle(tmp_path / "nested" / "catalog.db")
    ensure_schema(handle)
    ensure_schema(handle)

    with handle.locked() as conn:
        tables = {
            row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
        }
        indexes = {
            row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'index'").fetchall()
        }
    assert {"scan_scopes", "catalog_entries", "audit_log", "catalog_logs", "archive_config"} <= tables
    assert {"idx_entries_status", "idx_entries_cataloged", "idx_audit_entry", "idx_logs_ts"} <= indexes
    assert schema_version(handle) == SCHEMA_VERSION
    handle.close()


def test_unopenable_store_raises_schema_error(tmp_path: Path) -> None:
    handle = StoreHandle(tmp_path / "catalog.db")
    with mock.patch("catalog.handle.connect", side_effect=OSError("read-only file system")):
        with pytest.raises(SchemaError):
            ensure_schema(handle)


def test_corrupt_file_raises_schema_error(tmp_path: Path) -> None:
    path = tmp_path / "catalog.db"
    path.write_bytes(b"this is not a sqlite database" * 100)
    handle = StoreHandle(path)
    with pytest.raises(SchemaError):
        ensure_schema(handle)
    handle.close()


def test_savepoint_rolls_back_only_inner_work(tmp_path: Path) -> None:
    conn = core_db.connect(tmp_path / "sp.db")
    conn.execute("CREATE TABLE t (v INTEGER)")
    with core_db.transaction(conn):
        conn.execute("INSERT INTO t VALUES (1)")
        with pytest.raises(RuntimeError):
            with core_db.savepoint(conn, "inner"):
                conn.execute("INSERT INTO t VALUES (2)")
                raise RuntimeError("abort inner")
    assert [row["v"] for row in conn.execute("SELECT v FROM t").fetchall()] == [1]

    with pytest.raises(RuntimeError):
        with core_db.transaction(conn):
            conn.execute("INSERT INTO t VALUES (3)")
            raise RuntimeError("abort outer")
    assert conn.execute("SELECT COUNT(*) FROM t").fetchone()[0] == 1
    conn.close()
