"""Filesystem watcher that feeds change events into an IndexScheduler."""

from __future__ import annotations

import logging
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from sprig.sync import IndexScheduler

logger = logging.getLogger(__name__)


class SchedulerEventHandler(FileSystemEventHandler):
    """Translate watchdog events into ``record_event`` calls.

    A move is recorded as a deletion of the source and a creation of the
    destination. Directory events are ignored.
    """

    def __init__(self, scheduler: IndexScheduler) -> None:
        super().__init__()
        self._scheduler = scheduler

    def _record(self, path: str | bytes, kind: str) -> None:
        if isinstance(path, bytes):
            path = path.decode("utf-8", errors="replace")
        self._scheduler.record_event(path, kind)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._record(event.src_path, "created")

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._record(event.src_path, "modified")

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._record(event.src_path, "deleted")

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._record(event.src_path, "deleted")
            self._record(event.dest_path, "created")


def start_watcher(project_root: Path | str, scheduler: IndexScheduler) -> Observer:
    """Watch *project_root* recursively and feed *scheduler*.

    Returns:
        The running observer (call ``.stop()`` then ``.join()`` to stop it).

    Raises:
        ValueError: If *project_root* is not a directory.
    """
    root = Path(project_root).resolve()
    if not root.is_dir():
        raise ValueError(f"Not a directory: {project_root}")

    observer = Observer()
    observer.daemon = True
    observer.schedule(SchedulerEventHandler(scheduler), str(root), recursive=True)
    observer.start()
    logger.info("Watching %s for document changes", root)
    return observer
