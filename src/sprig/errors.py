"""Exception taxonomy for the sprig indexing and search pipeline.

Chunking never raises. Storage and provider failures propagate to the caller
of ``index_file`` / ``search``; the full-reindex driver and the background
scheduler catch them per file, log, and carry on.
"""

from __future__ import annotations


class SprigError(Exception):
    """Base class for every error raised by sprig."""


class SourceNotFoundError(SprigError):
    """The document to index does not exist on disk."""

    def __init__(self, rel_path: str) -> None:
        super().__init__(f"File not found: {rel_path}")
        self.rel_path = rel_path


class StorageError(SprigError):
    """The index database could not be opened, migrated, read or written."""


class EmbeddingProviderError(SprigError):
    """The embedding provider failed or returned an unusable response.

    A batch call never partially succeeds: either every input gets a vector
    or this error is raised.
    """


class SemanticSearchDisabledError(SprigError):
    """Semantic search is switched off or no embedding credential is set."""


class ReindexInProgressError(SprigError):
    """A full reindex of the project is already running."""
