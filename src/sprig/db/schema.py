"""Index schema initialization."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from sprig.db.connection import Database
from sprig.db.migrations import MIGRATIONS, run_migrations
from sprig.errors import StorageError

CURRENT_VERSION = MIGRATIONS[-1][0]


def initialize(conn: sqlite3.Connection) -> None:
    """Initialize the database schema via the migration runner (idempotent).

    Raises:
        StorageError: If the schema cannot be created.
    """
    try:
        run_migrations(conn)
    except sqlite3.Error as exc:
        raise StorageError(f"Failed to initialize index schema: {exc}") from exc


def open_index(project_root: Path | str) -> sqlite3.Connection:
    """Open (or create) the project's index database with its schema in place.

    The caller owns the returned connection and must close it.
    """
    conn = Database.for_project(project_root).connect()
    try:
        initialize(conn)
    except StorageError:
        conn.close()
        raise
    return conn
