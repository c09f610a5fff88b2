"""Forward-only migration runner for the index schema."""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS indexed_files (
    file_path     TEXT PRIMARY KEY,
    content_hash  TEXT NOT NULL,
    file_type     TEXT NOT NULL,
    last_indexed  TEXT NOT NULL,
    chunk_count   INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS chunks (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    file_path        TEXT NOT NULL REFERENCES indexed_files(file_path) ON DELETE CASCADE,
    chunk_index      INTEGER NOT NULL,
    section_heading  TEXT,
    content_hash     TEXT NOT NULL,
    content_preview  TEXT NOT NULL,
    token_count      INTEGER NOT NULL,
    embedding        BLOB NOT NULL,
    UNIQUE (file_path, chunk_index)
);

CREATE TABLE IF NOT EXISTS chunk_metadata (
    chunk_id      INTEGER PRIMARY KEY REFERENCES chunks(id) ON DELETE CASCADE,
    book_id       TEXT,
    chapter_id    TEXT,
    entity_type   TEXT,
    entity_name   TEXT
);

CREATE TABLE IF NOT EXISTS embedding_log (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp        TEXT NOT NULL,
    tokens_used      INTEGER NOT NULL,
    chunks_embedded  INTEGER NOT NULL,
    cost_usd         REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_chunks_file ON chunks(file_path);
CREATE INDEX IF NOT EXISTS idx_metadata_book ON chunk_metadata(book_id);
CREATE INDEX IF NOT EXISTS idx_metadata_entity ON chunk_metadata(entity_type, entity_name);
"""

# Files indexed before V2 have no recorded model and are re-embedded on next index.
_V2_SQL = """
ALTER TABLE indexed_files ADD COLUMN embedding_model TEXT;
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
    (2, _V2_SQL),
]


def current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied migration version (0 for a fresh database)."""
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] if row[0] is not None else 0


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    current = current_version(conn)

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()
