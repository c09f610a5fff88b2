"""Sprig ingest pipeline: chunker, embedding client, per-file indexer, reindex driver."""

from sprig.ingest.embeddings import EmbeddingClient, LiteLLMEmbeddingClient
from sprig.ingest.indexer import IndexFileResult, collect_indexable_files, deindex_file, index_file
from sprig.ingest.markdown import DocumentChunk, MarkdownChunker, chunk_document
from sprig.ingest.reindex import IndexProgress, Reindexer, ReindexSummary

__all__ = [
    "DocumentChunk",
    "EmbeddingClient",
    "IndexFileResult",
    "IndexProgress",
    "LiteLLMEmbeddingClient",
    "MarkdownChunker",
    "ReindexSummary",
    "Reindexer",
    "chunk_document",
    "collect_indexable_files",
    "deindex_file",
    "index_file",
]
