"""
SQLite database lifecycle for the job and tray stores.

The connection is opened once at process start and closed at shutdown.
It is shared by the poller thread, the tray sync thread and the status
API, so every statement runs under one lock.

GUARANTEES:
    - Writes are transactional (commit on success, rollback on error)
    - Schema version tracked with PRAGMA user_version
    - sqlite3 errors surface as PersistenceError

Usage:
    database = Database(Path("data/print_worker.db"))
    database.open()

    with database.transaction() as conn:
        conn.execute("UPDATE print_jobs SET ... WHERE id = ?", (...))

    database.close()
"""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence, Union

from .exceptions import PersistenceError


# Increment on breaking schema changes
SCHEMA_VERSION = 1

MEMORY_DATABASE = ":memory:"

SCHEMA = """
CREATE TABLE IF NOT EXISTS print_jobs (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    job_name            TEXT NOT NULL,
    file_path           TEXT,
    status              TEXT NOT NULL DEFAULT 'queued'
                        CHECK (status IN ('queued', 'printing', 'completed', 'error', 'cancelled')),
    tray_requested      TEXT,
    copies              INTEGER NOT NULL DEFAULT 1 CHECK (copies >= 1),
    duplex              INTEGER NOT NULL DEFAULT 0,
    color_mode          TEXT NOT NULL DEFAULT 'color',
    total_pages         INTEGER,
    pages_printed       INTEGER NOT NULL DEFAULT 0,
    submitted_by        TEXT,
    submitted_at        TEXT NOT NULL,
    started_printing_at TEXT,
    completed_at        TEXT,
    error_message       TEXT,
    device_job_id       INTEGER,
    tray_used           TEXT,
    retry_count         INTEGER NOT NULL DEFAULT 0,
    updated_at          TEXT
);

CREATE INDEX IF NOT EXISTS idx_print_jobs_queue ON print_jobs (status, submitted_at, id);

CREATE TABLE IF NOT EXISTS printer_trays (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    tray_name         TEXT NOT NULL UNIQUE,
    tray_number       INTEGER,
    paper_size        TEXT,
    paper_type        TEXT,
    paper_weight_gsm  INTEGER,
    color             TEXT,
    sheets_loaded     INTEGER NOT NULL DEFAULT 0,
    sheets_capacity   INTEGER NOT NULL DEFAULT 0,
    media_source_code TEXT,
    is_active         INTEGER NOT NULL DEFAULT 1,
    updated_at        TEXT
);
"""


class Database:
    """Owns the shared SQLite connection."""

    def __init__(self, path: Union[str, Path] = MEMORY_DATABASE, timeout_seconds: float = 10.0):
        """
        Args:
            path: Database file, or ":memory:" for a throwaway database
            timeout_seconds: How long a statement waits on a locked database
        """
        self.path = str(path)
        self.timeout_seconds = timeout_seconds
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> None:
        """
        Open the connection and create the schema if needed.

        Raises:
            PersistenceError: If the database cannot be opened or has a
                newer schema than this code understands
        """
        if self._conn is not None:
            return

        if self.path != MEMORY_DATABASE:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self._conn = sqlite3.connect(
                self.path,
                timeout=self.timeout_seconds,
                check_same_thread=False,  # shared by poller, tray sync and API threads
            )
            self._conn.row_factory = sqlite3.Row
            self._init_schema()
        except (sqlite3.Error, PersistenceError) as e:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
            if isinstance(e, PersistenceError):
                raise
            raise PersistenceError("open database", str(e)) from e

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _init_schema(self) -> None:
        version = self._conn.execute("PRAGMA user_version").fetchone()[0]
        if version > SCHEMA_VERSION:
            raise PersistenceError(
                "open database",
                f"schema version {version} is newer than supported version {SCHEMA_VERSION}",
            )
        self._conn.executescript(SCHEMA)
        self._conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        self._conn.commit()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run statements in one transaction under the connection lock.

        Raises:
            PersistenceError: If the database is closed or a statement fails
        """
        with self._lock:
            if self._conn is None:
                raise PersistenceError("transaction", "database is not open")
            try:
                yield self._conn
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                raise PersistenceError("transaction", str(e)) from e
            except Exception:
                self._conn.rollback()
                raise

    def query_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        with self.transaction() as conn:
            return conn.execute(sql, params).fetchone()

    def query_all(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        with self.transaction() as conn:
            return conn.execute(sql, params).fetchall()

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        with self.transaction() as conn:
            return conn.execute(sql, params)
