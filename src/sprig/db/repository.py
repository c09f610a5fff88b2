"""Repository for all index database operations.

Single interface for: indexed files, chunks (with embeddings), chunk
metadata, the embedding cost ledger, and aggregate statistics.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sprig.db.models import (
    ChunkMetadata,
    EmbeddingLogEntry,
    IndexedFile,
    IndexStats,
    StoredChunk,
)
from sprig.errors import StorageError


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string (sorts chronologically)."""
    return datetime.now(timezone.utc).isoformat()


class IndexRepository:
    """Data access layer for the per-project index.

    Wraps an open sqlite3.Connection. Each write commits on its own unless it
    runs inside ``transaction()``, in which case the whole block commits or
    rolls back together. The connection is owned by the caller and must be
    closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see sprig.db.schema.initialize).
        """
        self._conn = conn
        self._tx_depth = 0

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[IndexRepository]:
        """Group writes so they commit together or not at all."""
        self._tx_depth += 1
        try:
            yield self
        except BaseException:
            if self._tx_depth == 1:
                self._conn.rollback()
            raise
        else:
            if self._tx_depth == 1:
                self._commit()
        finally:
            self._tx_depth -= 1

    def _commit(self) -> None:
        try:
            self._conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Index commit failed: {exc}") from exc

    def _autocommit(self) -> None:
        if self._tx_depth == 0:
            self._commit()

    def _execute(self, sql: str, params: tuple | list = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as exc:
            raise StorageError(f"Index query failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Indexed files
    # ------------------------------------------------------------------

    def upsert_indexed_file(
        self,
        file_path: str,
        content_hash: str,
        file_type: str,
        chunk_count: int,
        embedding_model: str | None = None,
    ) -> None:
        """Insert or update the record for *file_path*, stamping last_indexed."""
        self._execute(
            """
            INSERT INTO indexed_files
                (file_path, content_hash, file_type, last_indexed, chunk_count, embedding_model)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(file_path) DO UPDATE SET
                content_hash = excluded.content_hash,
                file_type = excluded.file_type,
                last_indexed = excluded.last_indexed,
                chunk_count = excluded.chunk_count,
                embedding_model = excluded.embedding_model
            """,
            (file_path, content_hash, file_type, utc_now(), chunk_count, embedding_model),
        )
        self._autocommit()

    def get_indexed_file(self, file_path: str) -> IndexedFile | None:
        row = self._execute(
            "SELECT file_path, content_hash, file_type, last_indexed, chunk_count, embedding_model "
            "FROM indexed_files WHERE file_path = ?",
            (file_path,),
        ).fetchone()
        return _row_to_indexed_file(row) if row else None

    def list_indexed_files(self) -> list[IndexedFile]:
        """Return every indexed file ordered by path."""
        rows = self._execute(
            "SELECT file_path, content_hash, file_type, last_indexed, chunk_count, embedding_model "
            "FROM indexed_files ORDER BY file_path"
        ).fetchall()
        return [_row_to_indexed_file(r) for r in rows]

    def get_file_hash(self, file_path: str) -> str | None:
        """Return the stored whole-document hash for *file_path*, if indexed."""
        row = self._execute(
            "SELECT content_hash FROM indexed_files WHERE file_path = ?", (file_path,)
        ).fetchone()
        return row["content_hash"] if row else None

    def delete_file_data(self, file_path: str) -> None:
        """Delete a file record; its chunks and their metadata cascade."""
        self._execute("DELETE FROM indexed_files WHERE file_path = ?", (file_path,))
        self._autocommit()

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def delete_chunks_for_file(self, file_path: str) -> None:
        """Delete every chunk of *file_path*; chunk_metadata rows cascade."""
        self._execute("DELETE FROM chunks WHERE file_path = ?", (file_path,))
        self._autocommit()

    def insert_chunk(
        self,
        file_path: str,
        chunk_index: int,
        section_heading: str | None,
        content_hash: str,
        content_preview: str,
        token_count: int,
        embedding: bytes,
    ) -> int:
        """Insert one chunk row and return its auto-assigned id."""
        cur = self._execute(
            """
            INSERT INTO chunks (file_path, chunk_index, section_heading, content_hash,
                                content_preview, token_count, embedding)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                file_path,
                chunk_index,
                section_heading,
                content_hash,
                content_preview,
                token_count,
                embedding,
            ),
        )
        self._autocommit()
        return cur.lastrowid

    def insert_chunk_metadata(self, chunk_id: int, metadata: ChunkMetadata) -> None:
        self._execute(
            """
            INSERT INTO chunk_metadata (chunk_id, book_id, chapter_id, entity_type, entity_name)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                chunk_id,
                metadata.book_id,
                metadata.chapter_id,
                metadata.entity_type,
                metadata.entity_name,
            ),
        )
        self._autocommit()

    def get_chunk_hashes(self, file_path: str) -> dict[int, str]:
        """Return {chunk_index: content_hash} for the chunks stored for *file_path*."""
        rows = self._execute(
            "SELECT chunk_index, content_hash FROM chunks WHERE file_path = ?",
            (file_path,),
        ).fetchall()
        return {r["chunk_index"]: r["content_hash"] for r in rows}

    def get_chunk_embeddings(self, file_path: str) -> dict[int, tuple[str, bytes]]:
        """Return {chunk_index: (content_hash, embedding_bytes)} for *file_path*."""
        rows = self._execute(
            "SELECT chunk_index, content_hash, embedding FROM chunks WHERE file_path = ?",
            (file_path,),
        ).fetchall()
        return {r["chunk_index"]: (r["content_hash"], bytes(r["embedding"])) for r in rows}

    def count_chunks(self, file_path: str | None = None) -> int:
        """Return the number of chunks stored, for one file or the whole index."""
        if file_path is None:
            return self._execute("SELECT COUNT(*) FROM chunks").fetchone()[0]
        return self._execute(
            "SELECT COUNT(*) FROM chunks WHERE file_path = ?", (file_path,)
        ).fetchone()[0]

    def get_all_chunks_for_search(self) -> list[StoredChunk]:
        """Return every chunk with its metadata, in storage order."""
        rows = self._execute(
            """
            SELECT c.id, c.file_path, c.chunk_index, c.section_heading, c.content_preview,
                   c.token_count, c.embedding,
                   m.book_id, m.chapter_id, m.entity_type, m.entity_name
            FROM chunks c
            LEFT JOIN chunk_metadata m ON m.chunk_id = c.id
            ORDER BY c.id
            """
        ).fetchall()
        return [_row_to_stored_chunk(r) for r in rows]

    # ------------------------------------------------------------------
    # Embedding cost ledger
    # ------------------------------------------------------------------

    def log_embedding_call(self, tokens_used: int, chunks_embedded: int, cost_usd: float) -> None:
        """Append one entry to the embedding cost ledger."""
        self._execute(
            """
            INSERT INTO embedding_log (timestamp, tokens_used, chunks_embedded, cost_usd)
            VALUES (?, ?, ?, ?)
            """,
            (utc_now(), tokens_used, chunks_embedded, cost_usd),
        )
        self._autocommit()

    def list_embedding_log(self) -> list[EmbeddingLogEntry]:
        rows = self._execute(
            "SELECT id, timestamp, tokens_used, chunks_embedded, cost_usd "
            "FROM embedding_log ORDER BY id"
        ).fetchall()
        return [
            EmbeddingLogEntry(
                id=r["id"],
                timestamp=r["timestamp"],
                tokens_used=r["tokens_used"],
                chunks_embedded=r["chunks_embedded"],
                cost_usd=r["cost_usd"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Aggregates / maintenance
    # ------------------------------------------------------------------

    def get_index_stats(self) -> IndexStats:
        """Return file count, chunk count, latest index time and cumulative cost."""
        total_files = self._execute("SELECT COUNT(*) FROM indexed_files").fetchone()[0]
        total_chunks = self.count_chunks()
        last_indexed = self._execute("SELECT MAX(last_indexed) FROM indexed_files").fetchone()[0]
        total_cost = self._execute(
            "SELECT COALESCE(SUM(cost_usd), 0.0) FROM embedding_log"
        ).fetchone()[0]
        return IndexStats(
            total_files=total_files,
            total_chunks=total_chunks,
            last_indexed=last_indexed,
            total_cost_usd=float(total_cost),
        )

    def clear_all(self) -> None:
        """Wipe every table, including the cost ledger, and reclaim space."""
        for table in ("chunk_metadata", "chunks", "indexed_files", "embedding_log"):
            self._execute(f"DELETE FROM {table}")  # noqa: S608
        self._commit()
        # VACUUM cannot run inside a transaction.
        self._execute("VACUUM")


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _row_to_indexed_file(row: sqlite3.Row) -> IndexedFile:
    return IndexedFile(
        file_path=row["file_path"],
        content_hash=row["content_hash"],
        file_type=row["file_type"],
        last_indexed=row["last_indexed"],
        chunk_count=row["chunk_count"],
        embedding_model=row["embedding_model"],
    )


def _row_to_stored_chunk(row: sqlite3.Row) -> StoredChunk:
    return StoredChunk(
        id=row["id"],
        file_path=row["file_path"],
        chunk_index=row["chunk_index"],
        section_heading=row["section_heading"],
        content_preview=row["content_preview"],
        token_count=row["token_count"],
        embedding=bytes(row["embedding"]),
        metadata=ChunkMetadata(
            book_id=row["book_id"],
            chapter_id=row["chapter_id"],
            entity_type=row["entity_type"],
            entity_name=row["entity_name"],
        ),
    )
