"""SQLite-backed storage shared by the reference catalog and the exposure store.

Responsibilities:
- schema creation (kanji, radicals, exposure, catalog_metadata)
- connection-per-operation helpers with WAL journal and busy timeout
- the single-writer boundary: every write runs under one process-wide lock
  inside a ``BEGIN IMMEDIATE`` transaction, so read-modify-write never races

sqlite3 errors raised inside `read()`/`write()` surface as `PersistenceError`.
"""
from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from ...core.errors import InitializationError, PersistenceError
from ...core.registry import STORAGE_REGISTRY

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS kanji (
        character TEXT PRIMARY KEY,
        meanings TEXT NOT NULL,
        on_readings TEXT NOT NULL,
        kun_readings TEXT NOT NULL,
        stroke_count INTEGER NOT NULL,
        grade INTEGER,
        exam_level INTEGER,
        frequency INTEGER,
        radicals TEXT NOT NULL,
        mnemonic TEXT,
        examples TEXT NOT NULL
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_kanji_order ON kanji(stroke_count, character);",
    "CREATE INDEX IF NOT EXISTS idx_kanji_exam_level ON kanji(exam_level);",
    "CREATE INDEX IF NOT EXISTS idx_kanji_frequency ON kanji(frequency);",
    """
    CREATE TABLE IF NOT EXISTS radicals (
        radical TEXT PRIMARY KEY,
        name TEXT NOT NULL DEFAULT '',
        stroke_count INTEGER,
        meaning TEXT NOT NULL DEFAULT '',
        position TEXT NOT NULL DEFAULT ''
    );
    """,
    # exposure is keyed by character only: history survives catalog re-seeds
    """
    CREATE TABLE IF NOT EXISTS exposure (
        character TEXT PRIMARY KEY,
        times_seen INTEGER NOT NULL DEFAULT 0 CHECK (times_seen >= 0),
        times_correct INTEGER NOT NULL DEFAULT 0,
        times_incorrect INTEGER NOT NULL DEFAULT 0,
        first_encountered TEXT NOT NULL,
        last_seen TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS catalog_metadata (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    );
    """,
)


def _lower(value):
    return value.lower() if isinstance(value, str) else value


class SQLiteDatabase:
    """Thin wrapper around a single SQLite database file."""

    def __init__(self, db_path: str | Path, timeout: float = 10.0) -> None:
        self.db_path = str(db_path)
        self.timeout = timeout
        self._write_lock = threading.Lock()

    # --- low-level helpers ---
    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        # unicode-aware lower() for case-insensitive meaning search
        conn.create_function("py_lower", 1, _lower, deterministic=True)
        conn.execute("pragma journal_mode=WAL;")
        return conn

    def create_schema(self) -> None:
        """Create the database file and tables. Raises `InitializationError`."""
        if self.db_path == ":memory:":
            raise InitializationError("An on-disk database path is required")
        try:
            p = Path(self.db_path)
            if p.parent and not p.parent.exists():
                p.parent.mkdir(parents=True, exist_ok=True)
            conn = self._connect()
            try:
                with self._write_lock:
                    conn.execute("BEGIN IMMEDIATE;")
                    try:
                        for stmt in SCHEMA:
                            conn.execute(stmt)
                        conn.execute(
                            "INSERT OR IGNORE INTO catalog_metadata(key, value) VALUES ('schema_version', ?);",
                            (str(SCHEMA_VERSION),),
                        )
                        conn.execute("COMMIT;")
                    except BaseException:
                        if conn.in_transaction:
                            conn.execute("ROLLBACK;")
                        raise
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            logger.exception("Failed creating schema in %s", self.db_path)
            raise InitializationError(f"Cannot create store at {self.db_path}: {e}") from e
        logger.debug("Schema ready in %s", self.db_path)

    @contextmanager
    def read(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection for read-only queries."""
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open {self.db_path}: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            logger.exception("Read failed on %s", self.db_path)
            raise PersistenceError(str(e)) from e
        finally:
            conn.close()

    @contextmanager
    def write(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside an exclusive write transaction.

        Commits on normal exit, rolls back on any exception, so every write
        operation is all-or-nothing.
        """
        with self._write_lock:
            try:
                conn = self._connect()
            except sqlite3.Error as e:
                raise PersistenceError(f"Cannot open {self.db_path}: {e}") from e
            try:
                conn.execute("BEGIN IMMEDIATE;")
                try:
                    yield conn
                except BaseException:
                    if conn.in_transaction:
                        conn.execute("ROLLBACK;")
                    raise
                conn.execute("COMMIT;")
            except sqlite3.Error as e:
                logger.exception("Write failed on %s", self.db_path)
                raise PersistenceError(str(e)) from e
            finally:
                conn.close()

    def file_size(self) -> int:
        p = Path(self.db_path)
        total = 0
        for candidate in (p, p.with_name(p.name + "-wal")):
            if candidate.exists():
                total += candidate.stat().st_size
        return total


STORAGE_REGISTRY.register("sqlite", SQLiteDatabase)
