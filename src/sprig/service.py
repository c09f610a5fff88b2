"""Per-project entry point tying configuration, indexing, scheduling and search together.

One ``ProjectIndex`` is created per open project. It owns the indexing lock
shared by the background scheduler and the full reindex driver, so the two
never write the same index at once.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Collection
from dataclasses import dataclass
from pathlib import Path

from watchdog.observers import Observer

from sprig.config import SprigConfig, load_config
from sprig.db.models import IndexedFile
from sprig.db.repository import IndexRepository
from sprig.db.schema import open_index
from sprig.errors import SemanticSearchDisabledError
from sprig.ingest.embeddings import EmbeddingClient, LiteLLMEmbeddingClient, api_key_from_env
from sprig.ingest.indexer import IndexFileResult, deindex_file, index_file
from sprig.ingest.reindex import (
    CompleteCallback,
    IndexProgress,
    ProgressCallback,
    Reindexer,
    ReindexSummary,
)
from sprig.rag.search import SearchResult, load_excluded_paths, search
from sprig.sync import IndexScheduler
from sprig.watcher import start_watcher

logger = logging.getLogger(__name__)


@dataclass
class IndexStatus:
    total_files: int
    total_chunks: int
    last_indexed: str | None
    total_cost_usd: float
    is_indexing: bool
    index_progress: IndexProgress | None = None


class ProjectIndex:
    """Semantic index for one project directory.

    Args:
        project_root: Project directory.
        config:       Loaded configuration; read from disk when omitted.
        client:       Embedding client to use instead of the LiteLLM client
                      built from config and ``VOYAGE_API_KEY``.
    """

    def __init__(
        self,
        project_root: Path | str,
        config: SprigConfig | None = None,
        client: EmbeddingClient | None = None,
    ) -> None:
        self.project_root = Path(project_root)
        self.config = config if config is not None else load_config(self.project_root)
        self._client = client
        self._index_lock = threading.Lock()
        self.reindexer = Reindexer(self.project_root, self._index_lock)
        self.scheduler = IndexScheduler(
            self.project_root,
            self.embedding_client,
            self._index_lock,
            tick_interval=self.config.scheduler.tick_interval,
            quiet_period=self.config.scheduler.quiet_period,
        )
        self._observer: Observer | None = None

    # ------------------------------------------------------------------
    # Embedding client
    # ------------------------------------------------------------------

    def embedding_client(self) -> EmbeddingClient | None:
        """Return a client, or None when the feature is off or uncredentialed."""
        if not self.config.semantic_search.enabled:
            return None
        if self._client is None:
            api_key = api_key_from_env()
            if api_key is None:
                return None
            self._client = LiteLLMEmbeddingClient(
                api_key, self.config.semantic_search.embedding_model
            )
        return self._client

    def require_client(self) -> EmbeddingClient:
        """Like embedding_client(), but raise instead of returning None.

        Raises:
            SemanticSearchDisabledError: If search is disabled or no key is set.
        """
        if not self.config.semantic_search.enabled:
            raise SemanticSearchDisabledError("Semantic search is not enabled")
        client = self.embedding_client()
        if client is None:
            raise SemanticSearchDisabledError("No embedding API key is set")
        return client

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def reindex(
        self,
        on_progress: ProgressCallback | None = None,
        on_complete: CompleteCallback | None = None,
    ) -> ReindexSummary:
        """Index every document in the project."""
        return self.reindexer.run(self.require_client(), on_progress, on_complete)

    def index_file(self, rel_path: str) -> IndexFileResult:
        client = self.require_client()
        with self._index_lock:
            return index_file(self.project_root, rel_path, client)

    def deindex_file(self, rel_path: str) -> None:
        with self._index_lock:
            deindex_file(self.project_root, rel_path)

    def clear(self) -> None:
        """Delete every index row, including the embedding cost ledger."""
        with self._index_lock:
            conn = open_index(self.project_root)
            try:
                IndexRepository(conn).clear_all()
            finally:
                conn.close()
        logger.info("Cleared index for %s", self.project_root)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def search(
        self,
        query: str,
        max_results: int | None = None,
        entity_types: Collection[str] | None = None,
        book_id: str | None = None,
        already_loaded: Collection[str] | None = None,
        respect_context_settings: bool = True,
    ) -> list[SearchResult]:
        """Search the index, honouring the user's context exclusions by default."""
        client = self.require_client()
        if max_results is None:
            max_results = self.config.semantic_search.max_results_default
        excluded = load_excluded_paths(self.project_root) if respect_context_settings else set()
        return search(
            self.project_root,
            query,
            client,
            max_results=max_results,
            entity_types=entity_types,
            book_id=book_id,
            excluded_paths=excluded,
            already_loaded=already_loaded,
        )

    def status(self) -> IndexStatus:
        conn = open_index(self.project_root)
        try:
            stats = IndexRepository(conn).get_index_stats()
        finally:
            conn.close()
        return IndexStatus(
            total_files=stats.total_files,
            total_chunks=stats.total_chunks,
            last_indexed=stats.last_indexed,
            total_cost_usd=stats.total_cost_usd,
            is_indexing=self.reindexer.is_indexing,
            index_progress=self.reindexer.progress,
        )

    def indexed_files(self) -> list[IndexedFile]:
        """Return every indexed file record, sorted by path."""
        conn = open_index(self.project_root)
        try:
            return IndexRepository(conn).list_indexed_files()
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Background sync
    # ------------------------------------------------------------------

    def start_watching(self) -> None:
        """Start the filesystem watcher and the background scheduler.

        A no-op when ``semantic_search.auto_index`` is off.
        """
        if not self.config.semantic_search.auto_index:
            logger.info("Auto-index is disabled; not watching %s", self.project_root)
            return
        if self._observer is None:
            self._observer = start_watcher(self.project_root, self.scheduler)
        self.scheduler.start()

    def stop_watching(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        self.scheduler.stop()
