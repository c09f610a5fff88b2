"""Full reindex driver: index every document in the project, one file at a time."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from sprig.errors import ReindexInProgressError, SprigError
from sprig.ingest.embeddings import EmbeddingClient
from sprig.ingest.indexer import collect_indexable_files, index_file

logger = logging.getLogger(__name__)


@dataclass
class IndexProgress:
    files_processed: int
    files_total: int
    current_file: str


@dataclass
class ReindexSummary:
    total_files: int = 0
    total_chunks: int = 0
    total_embedded: int = 0
    total_tokens: int = 0
    failed: list[str] = field(default_factory=list)


ProgressCallback = Callable[[IndexProgress], None]
CompleteCallback = Callable[[ReindexSummary], None]


class Reindexer:
    """Runs full-project reindexes, at most one at a time.

    Args:
        project_root: Project directory.
        index_lock:   Per-project lock held around each ``index_file`` call.
                      Share it with the background scheduler so the two never
                      write the same index concurrently.
    """

    def __init__(
        self,
        project_root: Path | str,
        index_lock: threading.Lock | None = None,
    ) -> None:
        self.project_root = Path(project_root)
        self._index_lock = index_lock or threading.Lock()
        self._state_lock = threading.Lock()
        self._running = False
        self._progress: IndexProgress | None = None

    @property
    def is_indexing(self) -> bool:
        with self._state_lock:
            return self._running

    @property
    def progress(self) -> IndexProgress | None:
        with self._state_lock:
            return self._progress

    def run(
        self,
        client: EmbeddingClient,
        on_progress: ProgressCallback | None = None,
        on_complete: CompleteCallback | None = None,
    ) -> ReindexSummary:
        """Index every collectable file, continuing past per-file failures.

        Raises:
            ReindexInProgressError: If another run is already in progress.
        """
        with self._state_lock:
            if self._running:
                raise ReindexInProgressError("A full reindex is already running")
            self._running = True

        try:
            summary = self._run(client, on_progress)
        finally:
            with self._state_lock:
                self._running = False
                self._progress = None

        logger.info(
            "Reindex complete: %d files, %d chunks, %d embedded, %d failed",
            summary.total_files,
            summary.total_chunks,
            summary.total_embedded,
            len(summary.failed),
        )
        if on_complete is not None:
            on_complete(summary)
        return summary

    def _run(
        self, client: EmbeddingClient, on_progress: ProgressCallback | None
    ) -> ReindexSummary:
        files = collect_indexable_files(self.project_root)
        summary = ReindexSummary(total_files=len(files))

        for i, rel_path in enumerate(files):
            progress = IndexProgress(
                files_processed=i, files_total=len(files), current_file=rel_path
            )
            with self._state_lock:
                self._progress = progress
            if on_progress is not None:
                on_progress(progress)

            try:
                with self._index_lock:
                    result = index_file(self.project_root, rel_path, client)
            except SprigError as exc:
                logger.warning("Failed to index %s: %s", rel_path, exc)
                summary.failed.append(rel_path)
                continue

            summary.total_chunks += result.chunks_total
            summary.total_embedded += result.chunks_embedded
            summary.total_tokens += result.tokens_used

        return summary
