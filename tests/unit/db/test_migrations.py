"""Tests for the forward-only migration runner and schema initialization."""

from __future__ import annotations

import sqlite3

import pytest

from sprig.db import migrations
from sprig.db.connection import Database
from sprig.db.migrations import MIGRATIONS, current_version, run_migrations
from sprig.db.schema import CURRENT_VERSION, initialize, open_index
from sprig.errors import StorageError


def _fresh_conn(tmp_path):
    """Open a new connection without running migrations."""
    return Database(tmp_path / "index.db").connect()


def _table_exists(conn, name: str) -> bool:
    return conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (name,)
    ).fetchone() is not None


def _index_exists(conn, name: str) -> bool:
    return conn.execute(
        "SELECT name FROM sqlite_master WHERE type='index' AND name=?", (name,)
    ).fetchone() is not None


# --- Bootstrap ---

def test_fresh_database_is_version_zero(tmp_path):
    conn = _fresh_conn(tmp_path)
    conn.execute(
        "CREATE TABLE schema_version (version INTEGER NOT NULL, applied_at DATETIME)"
    )
    assert current_version(conn) == 0
    conn.close()


def test_run_migrations_records_version(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert current_version(conn) == MIGRATIONS[-1][0] == CURRENT_VERSION
    conn.close()


# --- Idempotency ---

def test_run_migrations_idempotent(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    run_migrations(conn)
    count = conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert count == len(MIGRATIONS)
    conn.close()


# --- Tables and indexes ---

@pytest.mark.parametrize(
    "table", ["indexed_files", "chunks", "chunk_metadata", "embedding_log"]
)
def test_run_migrations_creates_tables(tmp_path, table):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert _table_exists(conn, table)
    conn.close()


@pytest.mark.parametrize(
    "index", ["idx_chunks_file", "idx_metadata_book", "idx_metadata_entity"]
)
def test_run_migrations_creates_indexes(tmp_path, index):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert _index_exists(conn, index)
    conn.close()


def test_chunk_position_is_unique_per_file(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    conn.execute(
        "INSERT INTO indexed_files (file_path, content_hash, file_type, last_indexed, chunk_count) "
        "VALUES ('a.md', 'h', 'notes', '2024-01-01', 1)"
    )
    insert = (
        "INSERT INTO chunks (file_path, chunk_index, content_hash, content_preview, "
        "token_count, embedding) VALUES ('a.md', 0, 'h', 'p', 1, x'00000000')"
    )
    conn.execute(insert)
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(insert)
    conn.close()


def test_v1_index_upgrades_without_recorded_model(tmp_path, monkeypatch):
    conn = _fresh_conn(tmp_path)
    monkeypatch.setattr(migrations, "MIGRATIONS", MIGRATIONS[:1])
    migrations.run_migrations(conn)
    conn.execute(
        "INSERT INTO indexed_files (file_path, content_hash, file_type, last_indexed, chunk_count) "
        "VALUES ('a.md', 'h', 'notes', '2024-01-01', 1)"
    )
    conn.commit()
    monkeypatch.undo()

    run_migrations(conn)

    row = conn.execute("SELECT content_hash, embedding_model FROM indexed_files").fetchone()
    assert tuple(row) == ("h", None)
    assert current_version(conn) == CURRENT_VERSION
    conn.close()


# --- schema helpers ---

def test_initialize_is_idempotent(tmp_path):
    conn = _fresh_conn(tmp_path)
    initialize(conn)
    initialize(conn)
    assert current_version(conn) == CURRENT_VERSION
    conn.close()


def test_initialize_wraps_sqlite_errors(tmp_path):
    conn = _fresh_conn(tmp_path)
    conn.close()
    with pytest.raises(StorageError, match="initialize index schema"):
        initialize(conn)


def test_open_index_returns_ready_connection(tmp_path):
    conn = open_index(tmp_path)
    assert _table_exists(conn, "chunks")
    conn.close()
    assert (tmp_path / ".sprig" / "index.db").exists()
