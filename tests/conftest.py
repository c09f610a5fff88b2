"""Shared pytest fixtures."""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from sprig.db.repository import IndexRepository
from sprig.db.schema import open_index
from sprig.errors import EmbeddingProviderError
from sprig.ingest.embeddings import EmbeddingClient


class FakeEmbeddingClient(EmbeddingClient):
    """Deterministic embedding client: each text maps to a hash-derived vector.

    Records every batch it receives. ``overrides`` pins specific texts to
    specific vectors; ``fail`` makes every call raise.
    """

    def __init__(self, dims: int = 8, cost: float = 0.06, model: str | None = None) -> None:
        self._dims = dims
        self._model = model or f"fake-{dims}"
        self._cost = cost
        self.batches: list[list[str]] = []
        self.queries: list[str] = []
        self.overrides: dict[str, list[float]] = {}
        self.fail = False

    @property
    def model(self) -> str:
        return self._model

    @property
    def dimensions(self) -> int:
        return self._dims

    @property
    def cost_per_million_tokens(self) -> float:
        return self._cost

    @property
    def embedded_texts(self) -> list[str]:
        return [t for batch in self.batches for t in batch]

    def vector_for(self, text: str) -> list[float]:
        if text in self.overrides:
            return list(self.overrides[text])
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [(b - 127.5) / 127.5 for b in digest[: self._dims]]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if self.fail:
            raise EmbeddingProviderError("provider unavailable")
        if not texts:
            return []
        self.batches.append(list(texts))
        return [self.vector_for(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        if self.fail:
            raise EmbeddingProviderError("provider unavailable")
        self.queries.append(text)
        return self.vector_for(text)


@pytest.fixture
def project(tmp_path):
    """Empty project directory."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def fake_client():
    return FakeEmbeddingClient()


@pytest.fixture
def tmp_db(project):
    """Index DB for *project* with schema initialized, closed after test."""
    conn = open_index(project)
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    return IndexRepository(tmp_db)


@pytest.fixture
def make_client():
    """Factory for extra FakeEmbeddingClient instances."""
    return FakeEmbeddingClient


@pytest.fixture
def write_doc(project):
    """Write a document into *project*: ``write_doc("notes/a.md", "text")``."""

    def _write(rel_path: str, content: str) -> Path:
        path = project / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
