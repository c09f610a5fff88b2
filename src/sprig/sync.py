"""Debounced incremental re-indexing driven by filesystem change events.

The watcher thread feeds ``record_event``; a daemon thread calls ``tick``
every ``tick_interval`` seconds. A modified file is only re-indexed once it
has been quiet for ``quiet_period`` seconds, so a burst of saves costs one
embedding pass.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from sprig.db.connection import INDEX_DIR_NAME
from sprig.errors import SourceNotFoundError, SprigError
from sprig.ingest.embeddings import EmbeddingClient
from sprig.ingest.indexer import deindex_file, index_file

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL = 10.0
DEFAULT_QUIET_PERIOD = 120.0

EVENT_KINDS = ("created", "modified", "deleted")

# Returns a ready client, or None when semantic search is disabled or has no
# credential.
ClientProvider = Callable[[], "EmbeddingClient | None"]


@dataclass
class TickResult:
    deindexed: list[str] = field(default_factory=list)
    indexed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class IndexScheduler:
    """Owns the pending/deleted queues for one project and drains them on tick.

    Args:
        project_root:    Project directory being watched.
        client_provider: Called on every tick; ``None`` means do nothing.
        index_lock:      Per-project lock held around each index write.
        tick_interval:   Seconds between background ticks.
        quiet_period:    Seconds a file must go unmodified before re-indexing.
        clock:           Monotonic time source.
    """

    def __init__(
        self,
        project_root: Path | str,
        client_provider: ClientProvider,
        index_lock: threading.Lock | None = None,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
        quiet_period: float = DEFAULT_QUIET_PERIOD,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if tick_interval <= 0:
            raise ValueError(f"Tick interval must be positive, got {tick_interval}")
        if quiet_period < 0:
            raise ValueError(f"Quiet period must not be negative, got {quiet_period}")

        self.project_root = Path(project_root)
        self._resolved_root = self.project_root.resolve()
        self._client_provider = client_provider
        self._index_lock = index_lock or threading.Lock()
        self.tick_interval = tick_interval
        self.quiet_period = quiet_period
        self._clock = clock

        self._mutex = threading.Lock()
        self._pending: dict[str, float] = {}
        self._deleted: list[str] = []

        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Event intake
    # ------------------------------------------------------------------

    def record_event(self, path: Path | str, kind: str) -> None:
        """Queue a change notification for *path*.

        Non-markdown paths, paths inside the index directory and absolute
        paths outside the project are ignored.
        """
        if kind not in EVENT_KINDS:
            raise ValueError(f"Unknown event kind {kind!r}; expected one of {EVENT_KINDS}")

        rel_path = self._relative(path)
        if rel_path is None:
            return

        with self._mutex:
            if kind == "deleted":
                self._pending.pop(rel_path, None)
                if rel_path not in self._deleted:
                    self._deleted.append(rel_path)
            else:
                self._pending[rel_path] = self._clock()
                if rel_path in self._deleted:
                    self._deleted.remove(rel_path)
        logger.debug("Queued %s event for %s", kind, rel_path)

    def _relative(self, path: Path | str) -> str | None:
        p = Path(str(path).replace("\\", "/"))
        if p.is_absolute():
            try:
                p = p.relative_to(self.project_root)
            except ValueError:
                try:
                    p = p.resolve().relative_to(self._resolved_root)
                except ValueError:
                    return None
        if p.suffix != ".md" or INDEX_DIR_NAME in p.parts:
            return None
        return p.as_posix()

    def pending(self) -> dict[str, float]:
        """Snapshot of pending paths and their last-modified timestamps."""
        with self._mutex:
            return dict(self._pending)

    def deleted(self) -> list[str]:
        """Snapshot of paths waiting to be removed from the index."""
        with self._mutex:
            return list(self._deleted)

    # ------------------------------------------------------------------
    # Draining
    # ------------------------------------------------------------------

    def tick(self) -> TickResult:
        """Apply queued deletions, then re-index files that have gone quiet.

        A failed re-index is logged and dropped from the queue. The file is
        retried only when a new change event arrives for it.
        """
        result = TickResult()
        client = self._client_provider()
        if client is None:
            logger.debug("Semantic search unavailable; leaving queues untouched")
            return result

        with self._mutex:
            deleted, self._deleted = self._deleted, []

        for rel_path in deleted:
            try:
                with self._index_lock:
                    deindex_file(self.project_root, rel_path)
            except SprigError as exc:
                logger.warning("Failed to remove %s from index: %s", rel_path, exc)
                result.failed.append(rel_path)
                continue
            result.deindexed.append(rel_path)

        now = self._clock()
        with self._mutex:
            ready = sorted(
                p for p, t in self._pending.items() if now - t >= self.quiet_period
            )
            for rel_path in ready:
                del self._pending[rel_path]

        for rel_path in ready:
            try:
                with self._index_lock:
                    index_file(self.project_root, rel_path, client)
            except SourceNotFoundError:
                logger.info("Skipping %s: file no longer exists", rel_path)
                result.failed.append(rel_path)
                continue
            except SprigError as exc:
                logger.warning(
                    "Failed to index %s; it stays unindexed until its next change: %s",
                    rel_path,
                    exc,
                )
                result.failed.append(rel_path)
                continue
            result.indexed.append(rel_path)

        if result.deindexed or result.indexed or result.failed:
            logger.info(
                "Tick: %d removed, %d indexed, %d failed",
                len(result.deindexed),
                len(result.indexed),
                len(result.failed),
            )
        return result

    # ------------------------------------------------------------------
    # Background thread
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the background tick thread.

        A no-op while a previous thread is alive, including one still finishing
        its last tick after ``stop()``.
        """
        if self.is_running:
            if self._stop_event.is_set():
                logger.warning("Scheduler thread is still stopping; not starting another")
            else:
                logger.warning("Scheduler thread already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._tick_loop,
            name="sprig-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "Scheduler started (tick: %ss, quiet period: %ss)",
            self.tick_interval,
            self.quiet_period,
        )

    def stop(self) -> None:
        """Stop the background thread, waiting for an in-flight tick to finish.

        If the tick outlasts the wait, the thread handle is kept so ``start()``
        cannot run a second loop beside it; the thread exits after that tick.
        """
        if not self.is_running:
            self._thread = None
            return

        self._stop_event.set()
        self._thread.join(timeout=self.tick_interval + 1)
        if self._thread.is_alive():
            logger.warning("Scheduler thread is still finishing a tick; it will exit afterwards")
            return
        logger.info("Scheduler stopped")
        self._thread = None

    def _tick_loop(self) -> None:
        while not self._stop_event.is_set():
            if self._stop_event.wait(timeout=self.tick_interval):
                break
            try:
                self.tick()
            except Exception:
                logger.exception("Error during scheduled index tick")
