"""Corpus database connections: SQLite with sqlite-vec loaded.

``connect()`` returns a bare connection. ``open()`` and the context manager
also apply pending migrations, which is what commands want.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

from groundwork.db.schema import initialize

DEFAULT_DB_PATH = Path(".groundwork.db")

_BUSY_TIMEOUT_MS = 5_000


class Database:
    """A corpus database file.

    Args:
        db_path: Path to the SQLite file (created on first connect).
    """

    def __init__(self, db_path: Path | str = DEFAULT_DB_PATH) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def exists(self) -> bool:
        return self.db_path.is_file()

    def connect(self) -> sqlite3.Connection:
        """Open a connection with sqlite-vec loaded and foreign keys enforced."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.enable_load_extension(True)
        sqlite_vec.load(conn)
        conn.enable_load_extension(False)
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute(f"PRAGMA busy_timeout = {_BUSY_TIMEOUT_MS}")
        return conn

    def open(self) -> sqlite3.Connection:
        """Connect and bring the schema up to date."""
        conn = self.connect()
        try:
            initialize(conn)
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.open()
        return self._conn

    def __exit__(self, *args: object) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
