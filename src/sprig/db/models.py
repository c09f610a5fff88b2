"""Domain models for the index database layer."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class IndexedFile:
    file_path: str
    content_hash: str
    file_type: str
    last_indexed: str
    chunk_count: int = 0
    embedding_model: str | None = None


@dataclass
class ChunkMetadata:
    """Filter-only tags for a chunk. Never used for scoring."""

    book_id: str | None = None
    chapter_id: str | None = None
    entity_type: str | None = None
    entity_name: str | None = None


@dataclass
class StoredChunk:
    """A chunk row as read back for similarity search."""

    id: int
    file_path: str
    chunk_index: int
    section_heading: str | None
    content_preview: str
    token_count: int
    embedding: bytes
    metadata: ChunkMetadata


@dataclass
class EmbeddingLogEntry:
    timestamp: str
    tokens_used: int
    chunks_embedded: int
    cost_usd: float
    id: int | None = None


@dataclass
class IndexStats:
    total_files: int
    total_chunks: int
    last_indexed: str | None
    total_cost_usd: float
