"""Catalog entries and their processing state machine."""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .audit import AuditLog
from .errors import NotFoundError, SchemaError, StoreError
from .handle import StoreHandle
from .logs import FailSafeLogger, LogLevel
from .types import (
    IN_FLIGHT_STATUSES,
    CatalogEntry,
    CatalogStatistics,
    EntryStatus,
    EntryUpdate,
    format_ts,
    status_text,
    utc_now,
)

LOGGER = logging.getLogger("videoarchive.catalog.store")

_COMPONENT = "catalog"
_SELECT = "SELECT * FROM catalog_entries"


def _coerce_ts(value: datetime | str | None) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return format_ts(value)
    text = str(value).strip()
    return text or None


def _describe(status: str, update: Optional[EntryUpdate]) -> str:
    message = f"Status changed to {status}"
    if update is not None and update.last_error:
        message += f": {update.last_error}"
    return message


class CatalogStore:
    """CRUD and status transitions over ``catalog_entries``.

    Every status change is written together with its audit row in one
    transaction. The fail-safe event log is fed after the commit and never
    affects the outcome of a catalog write.
    """

    def __init__(
        self,
        handle: StoreHandle,
        *,
        audit: Optional[AuditLog] = None,
        event_log: Optional[FailSafeLogger] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._handle = handle
        self._clock = clock
        self.audit = audit or AuditLog(handle, clock=clock)
        self._events = event_log

    def _emit(self, message: str, level: LogLevel = LogLevel.INFO) -> None:
        if self._events is not None:
            self._events.log_entry(message, level, _COMPONENT)

    # ------------------------------------------------------------------
    def add_entry(
        self,
        source_uri: str,
        container_url: str,
        library_name: str,
        folder_path: str,
        filename: str,
        original_size: int,
        modified_time: datetime | str | None = None,
        scope_id: Optional[int] = None,
    ) -> bool:
        """Catalog a discovered file.

        Returns ``True`` when a new row was created and ``False`` when
        ``source_uri`` was already cataloged. Both outcomes are success; only
        a store failure raises (:class:`StoreError`), and the call can simply
        be repeated later.
        """

        source_uri = (source_uri or "").strip()
        if not source_uri:
            raise ValueError("source_uri must not be empty")
        size = int(original_size)
        if size <= 0:
            raise ValueError(f"original_size must be positive, got {original_size!r}")
        now = format_ts(self._clock())
        params = (
            source_uri,
            container_url,
            library_name,
            folder_path or "",
            filename,
            size,
            _coerce_ts(modified_time),
            now,
            EntryStatus.CATALOGED.value,
            scope_id,
        )
        try:
            with self._handle.transaction() as conn:
                cur = conn.execute(
                    """
                    INSERT INTO catalog_entries(
                        source_uri, container_url, container_name, path, filename,
                        original_size_bytes, modified_utc, cataloged_utc, status, retry_count, scope_id
                    ) VALUES(?,?,?,?,?,?,?,?,?,0,?)
                    ON CONFLICT(source_uri) DO NOTHING
                    """,
                    params,
                )
                created = cur.rowcount == 1
                if created:
                    self.audit.append_in_transaction(
                        conn, int(cur.lastrowid), EntryStatus.CATALOGED.value, "Cataloged", now
                    )
        except (sqlite3.Error, SchemaError) as exc:
            raise StoreError(f"Cannot catalog {source_uri}: {exc}") from exc
        if created:
            self._emit(f"Cataloged {filename} ({size} bytes)")
        else:
            self._emit(f"Already cataloged: {source_uri}", LogLevel.DEBUG)
        return created

    def get_entry(self, entry_id: int) -> CatalogEntry:
        rows = self._select(f"{_SELECT} WHERE id = ?", (int(entry_id),))
        if not rows:
            raise NotFoundError(f"Catalog entry {entry_id} does not exist")
        return rows[0]

    def find_by_source(self, source_uri: str) -> Optional[CatalogEntry]:
        rows = self._select(f"{_SELECT} WHERE source_uri = ?", (source_uri,))
        return rows[0] if rows else None

    def query_entries(
        self,
        status: EntryStatus | str | None = None,
        max_retry_count: Optional[int] = None,
        limit: Optional[int] = None,
        *,
        scope_id: Optional[int] = None,
        newest_first: bool = False,
    ) -> List[CatalogEntry]:
        """Return entries oldest-cataloged first unless ``newest_first`` is set."""

        clauses: List[str] = []
        params: List[Any] = []
        if status is not None:
            clauses.append("status = ?")
            params.append(status_text(status))
        if max_retry_count is not None:
            clauses.append("retry_count <= ?")
            params.append(int(max_retry_count))
        if scope_id is not None:
            clauses.append("scope_id = ?")
            params.append(int(scope_id))
        sql = _SELECT
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        direction = "DESC" if newest_first else "ASC"
        sql += f" ORDER BY cataloged_utc {direction}, id {direction}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(max(0, int(limit)))
        return self._select(sql, tuple(params))

    def failed_entries(self, max_retry_count: Optional[int] = None) -> List[CatalogEntry]:
        return self.query_entries(EntryStatus.FAILED, max_retry_count=max_retry_count)

    def count_entries(self, status: EntryStatus | str | None = None) -> int:
        sql = "SELECT COUNT(*) FROM catalog_entries"
        params: tuple = ()
        if status is not None:
            sql += " WHERE status = ?"
            params = (status_text(status),)
        try:
            with self._handle.locked() as conn:
                return int(conn.execute(sql, params).fetchone()[0])
        except (sqlite3.Error, SchemaError) as exc:
            raise StoreError(f"Cannot count catalog entries: {exc}") from exc

    # ------------------------------------------------------------------
    def transition_status(
        self,
        entry_id: int,
        new_status: EntryStatus | str,
        update: Optional[EntryUpdate] = None,
        *,
        message: Optional[str] = None,
    ) -> CatalogEntry:
        """Move an entry to ``new_status`` and record one audit row.

        Any status string is accepted. Entering ``Downloading`` stamps
        ``processing_started_utc`` (a retry restarts the clock); entering
        ``Completed`` or ``Failed`` stamps ``processing_completed_utc``.
        """

        status = status_text(new_status)
        now = format_ts(self._clock())
        clauses = ["status = ?"]
        params: List[Any] = [status]
        if status == EntryStatus.DOWNLOADING.value:
            clauses.append("processing_started_utc = ?")
            params.append(now)
        elif status in (EntryStatus.COMPLETED.value, EntryStatus.FAILED.value):
            clauses.append("processing_completed_utc = ?")
            params.append(now)
        if update is not None:
            extra, extra_params = update.assignments()
            clauses.extend(extra)
            params.extend(extra_params)
        params.append(int(entry_id))
        note = message or _describe(status, update)
        try:
            with self._handle.transaction() as conn:
                cur = conn.execute(
                    f"UPDATE catalog_entries SET {', '.join(clauses)} WHERE id = ?", params
                )
                if cur.rowcount == 0:
                    raise NotFoundError(f"Catalog entry {entry_id} does not exist")
                self.audit.append_in_transaction(conn, entry_id, status, note, now)
                row = conn.execute(f"{_SELECT} WHERE id = ?", (int(entry_id),)).fetchone()
        except (sqlite3.Error, SchemaError) as exc:
            raise StoreError(f"Cannot move entry {entry_id} to {status}: {exc}") from exc
        entry = CatalogEntry.from_row(row)
        level = LogLevel.WARNING if status == EntryStatus.FAILED.value else LogLevel.INFO
        self._emit(f"{entry.filename}: {note}", level)
        return entry

    def patch_entry(self, entry_id: int, update: EntryUpdate) -> CatalogEntry:
        """Apply field changes without touching the status."""

        if update.is_empty():
            return self.get_entry(entry_id)
        clauses, params = update.assignments()
        try:
            with self._handle.transaction() as conn:
                cur = conn.execute(
                    f"UPDATE catalog_entries SET {', '.join(clauses)} WHERE id = ?",
                    [*params, int(entry_id)],
                )
                if cur.rowcount == 0:
                    raise NotFoundError(f"Catalog entry {entry_id} does not exist")
                row = conn.execute(f"{_SELECT} WHERE id = ?", (int(entry_id),)).fetchone()
        except (sqlite3.Error, SchemaError) as exc:
            raise StoreError(f"Cannot update entry {entry_id}: {exc}") from exc
        self._emit(f"Entry {entry_id} updated", LogLevel.DEBUG)
        return CatalogEntry.from_row(row)

    def increment_retry(self, entry_id: int, error: Optional[str] = None) -> int:
        """Add one to ``retry_count`` and return the new value.

        Whether another attempt should follow is left to the caller.
        """

        try:
            with self._handle.transaction() as conn:
                cur = conn.execute(
                    "UPDATE catalog_entries SET retry_count = retry_count + 1, "
                    "last_error = COALESCE(?, last_error) WHERE id = ?",
                    (error, int(entry_id)),
                )
                if cur.rowcount == 0:
                    raise NotFoundError(f"Catalog entry {entry_id} does not exist")
                count = int(
                    conn.execute(
                        "SELECT retry_count FROM catalog_entries WHERE id = ?", (int(entry_id),)
                    ).fetchone()[0]
                )
        except (sqlite3.Error, SchemaError) as exc:
            raise StoreError(f"Cannot increment retry count for entry {entry_id}: {exc}") from exc
        self._emit(f"Entry {entry_id} retry #{count}" + (f": {error}" if error else ""), LogLevel.WARNING)
        return count

    def reset_interrupted(self, message: str = "Reset after interrupted run") -> int:
        """Return entries stranded mid-pipeline by a crash to ``Cataloged``."""

        placeholders = ",".join("?" for _ in IN_FLIGHT_STATUSES)
        try:
            with self._handle.locked() as conn:
                ids = [
                    int(row[0])
                    for row in conn.execute(
                        f"SELECT id FROM catalog_entries WHERE status IN ({placeholders}) "
                        "ORDER BY cataloged_utc, id",
                        IN_FLIGHT_STATUSES,
                    ).fetchall()
                ]
        except (sqlite3.Error, SchemaError) as exc:
            raise StoreError(f"Cannot look up interrupted entries: {exc}") from exc
        for entry_id in ids:
            self.transition_status(entry_id, EntryStatus.CATALOGED, message=message)
        if ids:
            LOGGER.info("Reset %s interrupted entries", len(ids))
        return len(ids)

    # ------------------------------------------------------------------
    def compute_statistics(self) -> CatalogStatistics:
        completed = EntryStatus.COMPLETED.value
        try:
            with self._handle.locked() as conn:
                total, original = conn.execute(
                    "SELECT COUNT(*), COALESCE(SUM(original_size_bytes), 0) FROM catalog_entries"
                ).fetchone()
                by_status: Dict[str, int] = {
                    row[0]: int(row[1])
                    for row in conn.execute(
                        "SELECT status, COUNT(*) FROM catalog_entries GROUP BY status ORDER BY status"
                    ).fetchall()
                }
                done_original, done_compressed = conn.execute(
                    "SELECT COALESCE(SUM(original_size_bytes), 0), COALESCE(SUM(compressed_size_bytes), 0) "
                    "FROM catalog_entries WHERE status = ?",
                    (completed,),
                ).fetchone()
        except (sqlite3.Error, SchemaError) as exc:
            raise StoreError(f"Cannot compute catalog statistics: {exc}") from exc
        stats = CatalogStatistics(
            total_cataloged=int(total),
            by_status=by_status,
            total_original_size=int(original),
            total_compressed_size=int(done_compressed),
        )
        if done_original > 0 and done_compressed > 0:
            stats.space_saved = int(done_original) - int(done_compressed)
            stats.average_compression_ratio = round(done_compressed / done_original, 2)
        return stats

    # ------------------------------------------------------------------
    def _select(self, sql: str, params: tuple) -> List[CatalogEntry]:
        try:
            with self._handle.locked() as conn:
                rows = conn.execute(sql, params).fetchall()
        except (sqlite3.Error, SchemaError) as exc:
            raise StoreError(f"Cannot read catalog entries: {exc}") from exc
        return [CatalogEntry.from_row(row) for row in rows]


__all__ = ["CatalogStore"]
