"""Shared connection owner for a catalog database file."""
from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from core.db import connect, pragma_optimize, transaction

from .errors import SchemaError

LOGGER = logging.getLogger("videoarchive.catalog.handle")


class StoreHandle:
    """Owns the path and the single shared connection to a catalog database.

    Every component talks to SQLite through one handle. The connection is
    opened lazily and guarded by a re-entrant lock, so callers on different
    threads are serialized and a component may call another component while
    already holding the lock.
    """

    def __init__(self, db_path: str | Path, *, timeout: float = 5.0) -> None:
        self.db_path = Path(db_path)
        self._timeout = timeout
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"StoreHandle({str(self.db_path)!r})"

    def __enter__(self) -> "StoreHandle":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    def connection(self) -> sqlite3.Connection:
        with self._lock:
            if self._conn is None:
                try:
                    self._conn = connect(self.db_path, timeout=self._timeout)
                except (sqlite3.Error, OSError) as exc:
                    raise SchemaError(f"Cannot open catalog store at {self.db_path}: {exc}") from exc
                LOGGER.debug("Opened catalog store %s", self.db_path)
            return self._conn

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @contextmanager
    def locked(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            yield self.connection()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            conn = self.connection()
            with transaction(conn):
                yield conn

    def optimize(self) -> None:
        with self.locked() as conn:
            pragma_optimize(conn)

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            try:
                self._conn.close()
            finally:
                self._conn = None


__all__ = ["StoreHandle"]
