"""SQLite connection layer for the per-project index database."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from sprig.errors import StorageError

INDEX_DIR_NAME = ".sprig"
INDEX_DB_NAME = "index.db"


def index_db_path(project_root: Path | str) -> Path:
    """Return the fixed location of the index database for *project_root*."""
    return Path(project_root) / INDEX_DIR_NAME / INDEX_DB_NAME


class Database:
    """Per-project SQLite database in WAL mode with foreign keys enforced."""

    def __init__(self, db_path: Path | str) -> None:
        """Store the database path. Call connect() to open the connection.

        Args:
            db_path: Path to the SQLite database file (created if missing,
                along with its parent directory).
        """
        self.db_path = Path(db_path)

    @classmethod
    def for_project(cls, project_root: Path | str) -> Database:
        """Return a Database pointing at ``<project_root>/.sprig/index.db``."""
        return cls(index_db_path(project_root))

    def connect(self) -> sqlite3.Connection:
        """Open a connection with WAL journaling and foreign keys enabled.

        WAL lets search and status queries read while an indexing pass holds
        the write lock.

        Raises:
            StorageError: If the directory or database cannot be opened.
        """
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA foreign_keys = ON")
        except (OSError, sqlite3.Error) as exc:
            raise StorageError(f"Cannot open index database '{self.db_path}': {exc}") from exc
        return conn

