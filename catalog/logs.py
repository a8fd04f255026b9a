"""Fail-safe structured logging into the catalog database.

Entries go to the ``catalog_logs`` table. When the store cannot be written
the line is appended to a daily plain-text fallback file instead, and when
even that fails a warning is handed to the stdlib logging tree. No public
method of :class:`FailSafeLogger` raises.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from pathlib import Path
from threading import Lock
from typing import Any, Callable, List, Optional

from .errors import CatalogError, LogWriteFailure
from .handle import StoreHandle
from .types import cutoff_ts, format_ts, utc_now

LOGGER = logging.getLogger("videoarchive.catalog.logs")
CONSOLE = logging.getLogger("videoarchive.console")

FALLBACK_MARKER = "[FALLBACK]"
FALLBACK_PREFIX = "catalog-fallback-"


class LogLevel(IntEnum):
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR

    @classmethod
    def parse(cls, value: Any) -> "LogLevel":
        if isinstance(value, LogLevel):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                raise ValueError(f"Unknown log level: {value!r}") from None
        text = str(value or "").strip().upper()
        if text == "WARN":
            text = "WARNING"
        try:
            return cls[text]
        except KeyError:
            raise ValueError(f"Unknown log level: {value!r}") from None


@dataclass(slots=True)
class LogEntry:
    id: int
    ts_utc: str
    level: str
    component: Optional[str]
    message: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "LogEntry":
        return cls(
            id=int(row["id"]),
            ts_utc=row["ts_utc"],
            level=row["level"],
            component=row["component"],
            message=row["message"],
        )


class FailSafeLogger:
    """Level-filtered log writer that degrades to a local file."""

    def __init__(
        self,
        handle: Optional[StoreHandle],
        *,
        fallback_dir: Path,
        min_level: LogLevel | str = LogLevel.INFO,
        echo_console: bool = True,
        retention_days: int = 30,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._handle = handle
        self.fallback_dir = Path(fallback_dir)
        self.min_level = LogLevel.parse(min_level)
        self.echo_console = bool(echo_console)
        self.retention_days = int(retention_days)
        self._clock = clock
        self._file_lock = Lock()

    # ------------------------------------------------------------------
    def log_entry(
        self,
        message: str,
        level: LogLevel | str = LogLevel.INFO,
        component: Optional[str] = None,
    ) -> None:
        try:
            try:
                parsed = LogLevel.parse(level)
            except ValueError:
                parsed = LogLevel.INFO
            if parsed < self.min_level:
                return
            moment = self._clock()
            ts = format_ts(moment)
            text = str(message)
            if self.echo_console:
                CONSOLE.log(int(parsed), "[%s] %s", component or "-", text)
            try:
                self._write_store(ts, parsed, component, text)
                return
            except LogWriteFailure as exc:
                reason = exc
            try:
                self._write_fallback(moment, ts, parsed, component, text)
            except OSError as exc:
                LOGGER.warning(
                    "Log entry lost (store: %s; fallback: %s): %s", reason, exc, text
                )
        except Exception:  # pragma: no cover
            try:
                LOGGER.warning("Unexpected failure while writing log entry", exc_info=True)
            except Exception:
                pass

    def debug(self, message: str, component: Optional[str] = None) -> None:
        self.log_entry(message, LogLevel.DEBUG, component)

    def info(self, message: str, component: Optional[str] = None) -> None:
        self.log_entry(message, LogLevel.INFO, component)

    def warning(self, message: str, component: Optional[str] = None) -> None:
        self.log_entry(message, LogLevel.WARNING, component)

    def error(self, message: str, component: Optional[str] = None) -> None:
        self.log_entry(message, LogLevel.ERROR, component)

    # ------------------------------------------------------------------
    def _write_store(self, ts: str, level: LogLevel, component: Optional[str], message: str) -> None:
        if self._handle is None:
            raise LogWriteFailure("no catalog store configured")
        try:
            with self._handle.locked() as conn:
                conn.execute(
                    "INSERT INTO catalog_logs(ts_utc, level, component, message) VALUES(?,?,?,?)",
                    (ts, level.name, component, message),
                )
        except (sqlite3.Error, CatalogError, OSError) as exc:
            raise LogWriteFailure(str(exc)) from exc

    def fallback_path(self, moment: Optional[datetime] = None) -> Path:
        day = format_ts(moment or self._clock())[:10].replace("-", "")
        return self.fallback_dir / f"{FALLBACK_PREFIX}{day}.log"

    def _write_fallback(
        self,
        moment: datetime,
        ts: str,
        level: LogLevel,
        component: Optional[str],
        message: str,
    ) -> None:
        line = f"{ts} {FALLBACK_MARKER} [{level.name}] [{component or '-'}] {message}\n"
        with self._file_lock:
            self.fallback_dir.mkdir(parents=True, exist_ok=True)
            with self.fallback_path(moment).open("a", encoding="utf-8") as handle:
                handle.write(line)

    # ------------------------------------------------------------------
    def query_history(
        self,
        limit: int = 100,
        level: LogLevel | str | None = None,
        component: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[LogEntry]:
        """Return stored entries, newest first; an empty list when unavailable."""

        if self._handle is None or int(limit) <= 0:
            return []
        clauses: List[str] = []
        params: List[Any] = []
        if level is not None:
            try:
                clauses.append("level = ?")
                params.append(LogLevel.parse(level).name)
            except ValueError:
                return []
        if component:
            clauses.append("component = ?")
            params.append(component)
        if start is not None:
            clauses.append("ts_utc >= ?")
            params.append(format_ts(start))
        if end is not None:
            clauses.append("ts_utc <= ?")
            params.append(format_ts(end))
        sql = "SELECT id, ts_utc, level, component, message FROM catalog_logs"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY ts_utc DESC, id DESC LIMIT ?"
        params.append(int(limit))
        try:
            with self._handle.locked() as conn:
                rows = conn.execute(sql, params).fetchall()
        except (sqlite3.Error, CatalogError) as exc:
            LOGGER.warning("Cannot read log history: %s", exc)
            return []
        return [LogEntry.from_row(row) for row in rows]

    def prune_old_entries(self, retention_days: Optional[int] = None) -> int:
        """Delete entries older than the retention window; return rows removed."""

        days = self.retention_days if retention_days is None else int(retention_days)
        if days < 0:
            return 0
        moment = self._clock()
        cutoff = cutoff_ts(moment, days)
        removed = 0
        if self._handle is not None:
            try:
                with self._handle.locked() as conn:
                    cur = conn.execute("DELETE FROM catalog_logs WHERE ts_utc < ?", (cutoff,))
                    removed = max(0, cur.rowcount)
            except (sqlite3.Error, CatalogError) as exc:
                LOGGER.warning("Log pruning failed: %s", exc)
        self._prune_fallback_files(cutoff[:10].replace("-", ""))
        if removed:
            LOGGER.info("Pruned %s log entries older than %s days", removed, days)
        return removed

    def _prune_fallback_files(self, cutoff_day: str) -> None:
        try:
            if not self.fallback_dir.exists():
                return
            for path in self.fallback_dir.glob(f"{FALLBACK_PREFIX}*.log"):
                day = path.stem[len(FALLBACK_PREFIX):]
                if len(day) == 8 and day.isdigit() and day < cutoff_day:
                    path.unlink(missing_ok=True)
        except OSError as exc:
            LOGGER.warning("Fallback log pruning failed: %s", exc)


__all__ = ["FALLBACK_MARKER", "FailSafeLogger", "LogEntry", "LogLevel"]
