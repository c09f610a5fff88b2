"""Brute-force semantic search over the project index.

Pipeline:
  1. Embed the query (``input_type="query"``).
  2. Load every stored chunk with its metadata.
  3. Drop chunks ruled out by exclusions, already-loaded paths, entity-type
     and book filters.
  4. Score the rest by cosine similarity, stable-sort descending, keep top-K.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Collection
from dataclasses import dataclass
from pathlib import Path

from sprig.db.models import StoredChunk
from sprig.db.repository import IndexRepository
from sprig.db.schema import open_index
from sprig.db.vectors import bytes_to_vector, cosine_similarity
from sprig.ingest.embeddings import EmbeddingClient

logger = logging.getLogger(__name__)

CONTEXT_SETTINGS_FILE = ".context_settings.json"


@dataclass
class SearchResult:
    chunk_id: int
    file_path: str
    section_heading: str | None
    similarity_score: float
    content_preview: str
    token_count: int
    entity_type: str | None = None
    entity_name: str | None = None
    book_id: str | None = None
    chapter_id: str | None = None


def search(
    project_root: Path | str,
    query: str,
    client: EmbeddingClient,
    max_results: int = 5,
    entity_types: Collection[str] | None = None,
    book_id: str | None = None,
    excluded_paths: Collection[str] | None = None,
    already_loaded: Collection[str] | None = None,
) -> list[SearchResult]:
    """Return the chunks most similar to *query*, best first.

    Args:
        project_root:   Project directory whose index is searched.
        query:          Free-text query.
        client:         Embedding provider used for the query vector.
        max_results:    Maximum number of results.
        entity_types:   When non-empty, only chunks whose entity type is listed
                        (chunks with no entity type are skipped).
        book_id:        When set, only chunks tagged with this book.
        excluded_paths: Files the user excluded from AI context.
        already_loaded: Files the caller has already put into the prompt.

    Raises:
        EmbeddingProviderError: If the query cannot be embedded.
        StorageError: If the index cannot be read.
    """
    query_vector = client.embed_query(query)

    conn = open_index(project_root)
    try:
        chunks = IndexRepository(conn).get_all_chunks_for_search()
    finally:
        conn.close()

    excluded = set(excluded_paths or ())
    loaded = set(already_loaded or ())
    wanted_types = set(entity_types or ())

    scored: list[tuple[float, StoredChunk]] = []
    mismatched = 0
    for chunk in chunks:
        path = chunk.file_path.replace("\\", "/")
        if path in excluded or path in loaded:
            continue
        meta = chunk.metadata
        if wanted_types and meta.entity_type not in wanted_types:
            continue
        if book_id is not None and meta.book_id != book_id:
            continue
        try:
            vector = bytes_to_vector(chunk.embedding)
        except ValueError:
            logger.warning("Skipping chunk %d of %s: malformed vector", chunk.id, path)
            continue
        if len(vector) != len(query_vector):
            mismatched += 1
            continue
        scored.append((cosine_similarity(query_vector, vector), chunk))

    if mismatched:
        logger.warning(
            "Skipped %d chunks embedded with a different model; run a full reindex",
            mismatched,
        )

    # sort() is stable, so equal scores keep storage order.
    scored.sort(key=lambda pair: pair[0], reverse=True)

    return [_to_result(score, chunk) for score, chunk in scored[: max(0, max_results)]]


def _to_result(score: float, chunk: StoredChunk) -> SearchResult:
    meta = chunk.metadata
    return SearchResult(
        chunk_id=chunk.id,
        file_path=chunk.file_path.replace("\\", "/"),
        section_heading=chunk.section_heading,
        similarity_score=score,
        content_preview=chunk.content_preview,
        token_count=chunk.token_count,
        entity_type=meta.entity_type,
        entity_name=meta.entity_name,
        book_id=meta.book_id,
        chapter_id=meta.chapter_id,
    )


# ------------------------------------------------------------------
# Context settings
# ------------------------------------------------------------------


def load_excluded_paths(project_root: Path | str) -> set[str]:
    """Return the paths marked ``"exclude"`` in the project's context settings.

    The settings file maps relative path → ``"auto" | "exclude" | "force"``.
    A missing file means nothing is excluded; an unreadable or malformed one
    is logged and treated the same way.
    """
    path = Path(project_root) / CONTEXT_SETTINGS_FILE
    if not path.exists():
        return set()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable %s: %s", CONTEXT_SETTINGS_FILE, exc)
        return set()
    if not isinstance(data, dict):
        logger.warning("Ignoring %s: expected a JSON object", CONTEXT_SETTINGS_FILE)
        return set()
    return {
        str(rel).replace("\\", "/")
        for rel, mode in data.items()
        if mode == "exclude"
    }


# ------------------------------------------------------------------
# Token budget
# ------------------------------------------------------------------


def fit_token_budget(
    results: list[SearchResult], budget: int
) -> tuple[list[SearchResult], int]:
    """Keep results in rank order while they fit *budget* tokens.

    Returns:
        (selected, total_tokens)
    """
    selected: list[SearchResult] = []
    total = 0
    for result in results:
        if total + result.token_count > budget:
            break
        selected.append(result)
        total += result.token_count
    return selected, total
