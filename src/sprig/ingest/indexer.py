"""Per-file indexing: chunk, diff against the stored index, embed, store.

``index_file`` is the unit of work shared by the background scheduler and the
full reindex driver. All writes for one file happen inside a single store
transaction, so a provider or storage failure leaves the previously committed
state for that file in place.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from sprig.db.models import ChunkMetadata
from sprig.db.repository import IndexRepository
from sprig.db.schema import open_index
from sprig.db.vectors import bytes_to_vector, vector_to_bytes
from sprig.errors import EmbeddingProviderError, SourceNotFoundError, StorageError
from sprig.ingest.embeddings import EmbeddingClient
from sprig.ingest.markdown import DocumentChunk, chunk_document, sha256_hex

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 128

# Directory names never descended into when collecting files (hidden entries
# are skipped as well).
SKIP_DIRS = frozenset({"exports", "node_modules"})


@dataclass
class IndexFileResult:
    chunks_total: int = 0
    chunks_embedded: int = 0
    tokens_used: int = 0
    # True when the stored hash and model already match the file.
    unchanged: bool = False


def index_file(
    project_root: Path | str,
    rel_path: str,
    client: EmbeddingClient,
) -> IndexFileResult:
    """Bring the stored index for *rel_path* in line with the file on disk.

    Args:
        project_root: Project directory holding the document tree.
        rel_path:     Forward-slash path relative to *project_root*.
        client:       Embedding provider for new and changed chunks.

    Returns:
        Counts of chunks stored, chunks embedded and tokens sent. All zero
        when the document is unchanged or produces no chunks. A file last
        indexed with a different ``client.model`` counts as changed and is
        fully re-embedded.

    Raises:
        SourceNotFoundError: If the file does not exist.
        StorageError: On read or database failure.
        EmbeddingProviderError: If the provider fails or returns vectors whose
            width differs from ``client.dimensions``; nothing is committed.
    """
    full_path = Path(project_root) / rel_path
    if not full_path.is_file():
        raise SourceNotFoundError(rel_path)
    try:
        content = full_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise StorageError(f"Failed to read {rel_path}: {exc}") from exc

    file_hash = sha256_hex(content)

    conn = open_index(project_root)
    try:
        repo = IndexRepository(conn)
        indexed = repo.get_indexed_file(rel_path)
        same_model = indexed is not None and indexed.embedding_model == client.model
        if same_model and indexed.content_hash == file_hash:
            logger.debug("Unchanged, skipping: %s", rel_path)
            return IndexFileResult(unchanged=True)
        if indexed is not None and not same_model:
            logger.info(
                "Embedding model changed for %s (%s -> %s); re-embedding all chunks",
                rel_path,
                indexed.embedding_model,
                client.model,
            )

        chunks = chunk_document(content, rel_path)
        if not chunks:
            logger.debug("No chunks produced, leaving index untouched: %s", rel_path)
            return IndexFileResult()

        previous = repo.get_chunk_embeddings(rel_path) if same_model else {}
        result = _store_chunks(repo, rel_path, file_hash, chunks, previous, client)
    finally:
        conn.close()

    logger.info(
        "Indexed %s: %d chunks, %d embedded, %d tokens",
        rel_path,
        result.chunks_total,
        result.chunks_embedded,
        result.tokens_used,
    )
    return result


def _store_chunks(
    repo: IndexRepository,
    rel_path: str,
    file_hash: str,
    chunks: list[DocumentChunk],
    stored: dict[int, tuple[str, bytes]],
    client: EmbeddingClient,
) -> IndexFileResult:
    # Chunks whose text matches what is stored at the same index keep their
    # previous vector; everything else goes to the provider.
    vectors: dict[int, list[float]] = {}
    to_embed: list[DocumentChunk] = []
    for chunk in chunks:
        previous = stored.get(chunk.chunk_index)
        reused = (
            _reusable_vector(rel_path, previous, chunk, client.dimensions)
            if previous
            else None
        )
        if reused is None:
            to_embed.append(chunk)
        else:
            vectors[chunk.chunk_index] = reused

    with repo.transaction():
        repo.delete_chunks_for_file(rel_path)
        repo.upsert_indexed_file(
            rel_path,
            file_hash,
            chunks[0].classification.file_type,
            len(chunks),
            client.model,
        )

        for start in range(0, len(to_embed), MAX_BATCH_SIZE):
            batch = to_embed[start : start + MAX_BATCH_SIZE]
            embedded = client.embed_batch([c.content for c in batch])
            if len(embedded) != len(batch):
                raise EmbeddingProviderError(
                    f"Provider returned {len(embedded)} vectors for {len(batch)} chunks"
                )
            for chunk, vector in zip(batch, embedded):
                if len(vector) != client.dimensions:
                    raise EmbeddingProviderError(
                        f"Provider returned a {len(vector)}-dimension vector for "
                        f"{client.model}, expected {client.dimensions}"
                    )
                vectors[chunk.chunk_index] = vector

        for chunk in chunks:
            chunk_id = repo.insert_chunk(
                rel_path,
                chunk.chunk_index,
                chunk.section_heading,
                chunk.content_hash,
                chunk.content_preview,
                chunk.token_count,
                vector_to_bytes(vectors[chunk.chunk_index]),
            )
            c = chunk.classification
            repo.insert_chunk_metadata(
                chunk_id,
                ChunkMetadata(
                    book_id=c.book_id,
                    chapter_id=c.chapter_id,
                    entity_type=c.entity_type,
                    entity_name=c.entity_name,
                ),
            )

        tokens_used = sum(c.token_count for c in to_embed)
        if to_embed:
            cost = tokens_used / 1_000_000 * client.cost_per_million_tokens
            repo.log_embedding_call(tokens_used, len(to_embed), cost)

    return IndexFileResult(
        chunks_total=len(chunks),
        chunks_embedded=len(to_embed),
        tokens_used=tokens_used,
    )


def _reusable_vector(
    rel_path: str, previous: tuple[str, bytes], chunk: DocumentChunk, dimensions: int
) -> list[float] | None:
    old_hash, blob = previous
    if old_hash != chunk.content_hash:
        return None
    try:
        vector = bytes_to_vector(blob)
    except ValueError:
        logger.warning(
            "Stored vector for %s chunk %d is malformed; re-embedding",
            rel_path,
            chunk.chunk_index,
        )
        return None
    if len(vector) != dimensions:
        logger.warning(
            "Stored vector for %s chunk %d has %d dimensions, expected %d; re-embedding",
            rel_path,
            chunk.chunk_index,
            len(vector),
            dimensions,
        )
        return None
    return vector


def deindex_file(project_root: Path | str, rel_path: str) -> None:
    """Remove every stored row for *rel_path*. A no-op when it was never indexed."""
    conn = open_index(project_root)
    try:
        IndexRepository(conn).delete_file_data(rel_path)
    finally:
        conn.close()
    logger.info("Removed from index: %s", rel_path)


def collect_indexable_files(project_root: Path | str) -> list[str]:
    """Return sorted forward-slash relative paths of every indexable ``.md`` file.

    Hidden entries and the ``exports`` / ``node_modules`` directories are
    skipped. Unreadable directories are skipped silently.
    """
    root = Path(project_root)
    files: list[str] = []

    def on_error(exc: OSError) -> None:
        logger.debug("Skipping unreadable directory: %s", exc)

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        dirnames[:] = [
            d for d in dirnames if not d.startswith(".") and d not in SKIP_DIRS
        ]
        for name in filenames:
            if name.startswith(".") or not name.endswith(".md"):
                continue
            rel = (Path(dirpath) / name).relative_to(root)
            files.append(rel.as_posix())
    return sorted(files)
