"""Append-only processing history for catalog entries."""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Callable, List, Optional

from core.db import savepoint

from .errors import CatalogError, SchemaError, StoreError
from .handle import StoreHandle
from .types import AuditLogEntry, EntryStatus, cutoff_ts, format_ts, status_text, utc_now

LOGGER = logging.getLogger("videoarchive.catalog.audit")

_INSERT = "INSERT INTO audit_log(entry_id, ts_utc, status, message) VALUES(?,?,?,?)"


class AuditLog:
    """Write and read the per-entry audit trail.

    Appends never raise. A failed append is reported as a warning and
    ``False`` is returned, so the status write it accompanies still stands.
    """

    def __init__(self, handle: StoreHandle, *, clock: Callable[[], datetime] = utc_now) -> None:
        self._handle = handle
        self._clock = clock

    def append(
        self,
        entry_id: int,
        status: EntryStatus | str,
        message: Optional[str] = None,
        *,
        ts: Optional[str] = None,
    ) -> bool:
        try:
            params = (int(entry_id), ts or format_ts(self._clock()), status_text(status), message)
            with self._handle.locked() as conn:
                conn.execute(_INSERT, params)
        except (sqlite3.Error, CatalogError, ValueError) as exc:
            LOGGER.warning("Audit append failed for entry %s: %s", entry_id, exc)
            return False
        return True

    def append_in_transaction(
        self,
        conn: sqlite3.Connection,
        entry_id: int,
        status: str,
        message: Optional[str],
        ts: str,
    ) -> bool:
        """Append inside the caller's open transaction, isolated by a savepoint."""

        try:
            with savepoint(conn, "audit_append"):
                conn.execute(_INSERT, (int(entry_id), ts, status, message))
        except sqlite3.Error as exc:
            LOGGER.warning("Audit append failed for entry %s: %s", entry_id, exc)
            return False
        return True

    def history(self, entry_id: int) -> List[AuditLogEntry]:
        return self._select(
            "SELECT id, entry_id, ts_utc, status, message FROM audit_log WHERE entry_id = ? ORDER BY id",
            (int(entry_id),),
        )

    def recent(self, limit: int = 100) -> List[AuditLogEntry]:
        return self._select(
            "SELECT id, entry_id, ts_utc, status, message FROM audit_log ORDER BY id DESC LIMIT ?",
            (max(1, int(limit)),),
        )

    def _select(self, sql: str, params: tuple) -> List[AuditLogEntry]:
        try:
            with self._handle.locked() as conn:
                rows = conn.execute(sql, params).fetchall()
        except (sqlite3.Error, SchemaError) as exc:
            raise StoreError(f"Cannot read audit log: {exc}") from exc
        return [AuditLogEntry.from_row(row) for row in rows]

    def prune(self, retention_days: int) -> int:
        if retention_days < 0:
            return 0
        cutoff = cutoff_ts(self._clock(), retention_days)
        try:
            with self._handle.locked() as conn:
                cur = conn.execute("DELETE FROM audit_log WHERE ts_utc < ?", (cutoff,))
        except (sqlite3.Error, CatalogError) as exc:
            LOGGER.warning("Audit pruning failed: %s", exc)
            return 0
        return max(0, cur.rowcount)


__all__ = ["AuditLog"]
