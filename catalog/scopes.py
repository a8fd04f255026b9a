"""Registry of configured scan scopes."""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Callable, List, Optional

from .errors import NotFoundError, SchemaError, StoreError
from .handle import StoreHandle
from .logs import FailSafeLogger, LogLevel
from .types import Scope, ScopeMode, format_ts, utc_now

LOGGER = logging.getLogger("videoarchive.catalog.scopes")

_COMPONENT = "scopes"


def _mode_text(mode: ScopeMode | str) -> str:
    if isinstance(mode, ScopeMode):
        return mode.value
    text = str(mode or "").strip()
    for candidate in ScopeMode:
        if candidate.value.lower() == text.lower():
            return candidate.value
    raise ValueError(f"Unknown scope mode: {mode!r}")


class ScopeRegistry:
    """CRUD over ``scan_scopes`` plus cached per-scope totals."""

    def __init__(
        self,
        handle: StoreHandle,
        *,
        event_log: Optional[FailSafeLogger] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._handle = handle
        self._events = event_log
        self._clock = clock

    def _emit(self, message: str, level: LogLevel = LogLevel.INFO) -> None:
        if self._events is not None:
            self._events.log_entry(message, level, _COMPONENT)

    # ------------------------------------------------------------------
    def add_scope(
        self,
        mode: ScopeMode | str,
        container_url: str,
        library_name: str = "",
        folder_path: str = "",
        *,
        recursive: bool = True,
        display_name: Optional[str] = None,
        enabled: bool = True,
    ) -> Scope:
        container_url = (container_url or "").strip()
        if not container_url:
            raise ValueError("container_url must not be empty")
        mode_value = _mode_text(mode)
        name = display_name or " / ".join(part for part in (container_url, library_name, folder_path) if part)
        try:
            with self._handle.locked() as conn:
                cur = conn.execute(
                    """
                    INSERT INTO scan_scopes(
                        mode, container_url, library_name, folder_path, recursive,
                        display_name, enabled, created_utc
                    ) VALUES(?,?,?,?,?,?,?,?)
                    """,
                    (
                        mode_value,
                        container_url,
                        library_name or "",
                        folder_path or "",
                        1 if recursive else 0,
                        name,
                        1 if enabled else 0,
                        format_ts(self._clock()),
                    ),
                )
                scope_id = int(cur.lastrowid)
        except (sqlite3.Error, SchemaError) as exc:
            raise StoreError(f"Cannot add scope {name}: {exc}") from exc
        self._emit(f"Scope added: {name}")
        return self.get_scope(scope_id)

    def get_scope(self, scope_id: int) -> Scope:
        rows = self._select("SELECT * FROM scan_scopes WHERE id = ?", (int(scope_id),))
        if not rows:
            raise NotFoundError(f"Scope {scope_id} does not exist")
        return rows[0]

    def list_scopes(self, enabled_only: bool = False) -> List[Scope]:
        sql = "SELECT * FROM scan_scopes"
        if enabled_only:
            sql += " WHERE enabled = 1"
        return self._select(sql + " ORDER BY id", ())

    def enable_scope(self, scope_id: int) -> Scope:
        return self._set_enabled(scope_id, True)

    def disable_scope(self, scope_id: int) -> Scope:
        return self._set_enabled(scope_id, False)

    def mark_scanned(self, scope_id: int) -> Scope:
        self._update(scope_id, "last_scanned_utc = ?", (format_ts(self._clock()),))
        return self.get_scope(scope_id)

    # ------------------------------------------------------------------
    def refresh_scope_stats(self, scope_id: int) -> Scope:
        """Recompute ``video_count`` and ``total_size_bytes`` from catalog rows."""

        try:
            with self._handle.transaction() as conn:
                count, total = conn.execute(
                    "SELECT COUNT(*), COALESCE(SUM(original_size_bytes), 0) "
                    "FROM catalog_entries WHERE scope_id = ?",
                    (int(scope_id),),
                ).fetchone()
                cur = conn.execute(
                    "UPDATE scan_scopes SET video_count = ?, total_size_bytes = ? WHERE id = ?",
                    (int(count), int(total), int(scope_id)),
                )
                if cur.rowcount == 0:
                    raise NotFoundError(f"Scope {scope_id} does not exist")
        except (sqlite3.Error, SchemaError) as exc:
            raise StoreError(f"Cannot refresh scope {scope_id}: {exc}") from exc
        return self.get_scope(scope_id)

    def refresh_all_stats(self) -> List[Scope]:
        return [self.refresh_scope_stats(scope.id) for scope in self.list_scopes()]

    def remove_scope(self, scope_id: int, cascade: bool = False) -> int:
        """Delete a scope; return how many catalog entries were deleted.

        With ``cascade`` the scope's entries (and their audit rows) go first,
        otherwise they are detached and kept as ungrouped entries.
        """

        removed = 0
        try:
            with self._handle.transaction() as conn:
                exists = conn.execute("SELECT 1 FROM scan_scopes WHERE id = ?", (int(scope_id),)).fetchone()
                if exists is None:
                    raise NotFoundError(f"Scope {scope_id} does not exist")
                if cascade:
                    conn.execute(
                        "DELETE FROM audit_log WHERE entry_id IN "
                        "(SELECT id FROM catalog_entries WHERE scope_id = ?)",
                        (int(scope_id),),
                    )
                    cur = conn.execute("DELETE FROM catalog_entries WHERE scope_id = ?", (int(scope_id),))
                    removed = max(0, cur.rowcount)
                else:
                    conn.execute("UPDATE catalog_entries SET scope_id = NULL WHERE scope_id = ?", (int(scope_id),))
                conn.execute("DELETE FROM scan_scopes WHERE id = ?", (int(scope_id),))
        except (sqlite3.Error, SchemaError) as exc:
            raise StoreError(f"Cannot remove scope {scope_id}: {exc}") from exc
        self._emit(
            f"Scope {scope_id} removed" + (f" with {removed} entries" if cascade else ""),
            LogLevel.WARNING if removed else LogLevel.INFO,
        )
        return removed

    # ------------------------------------------------------------------
    def _set_enabled(self, scope_id: int, enabled: bool) -> Scope:
        self._update(scope_id, "enabled = ?", (1 if enabled else 0,))
        self._emit(f"Scope {scope_id} {'enabled' if enabled else 'disabled'}")
        return self.get_scope(scope_id)

    def _update(self, scope_id: int, assignment: str, params: tuple) -> None:
        try:
            with self._handle.locked() as conn:
                cur = conn.execute(f"UPDATE scan_scopes SET {assignment} WHERE id = ?", (*params, int(scope_id)))
        except (sqlite3.Error, SchemaError) as exc:
            raise StoreError(f"Cannot update scope {scope_id}: {exc}") from exc
        if cur.rowcount == 0:
            raise NotFoundError(f"Scope {scope_id} does not exist")

    def _select(self, sql: str, params: tuple) -> List[Scope]:
        try:
            with self._handle.locked() as conn:
                rows = conn.execute(sql, params).fetchall()
        except (sqlite3.Error, SchemaError) as exc:
            raise StoreError(f"Cannot read scopes: {exc}") from exc
        return [Scope.from_row(row) for row in rows]


__all__ = ["ScopeRegistry"]
