"""Embedding client boundary: abstract capability plus a LiteLLM-backed client.

All document and query embeddings route through an ``EmbeddingClient``. The
concrete client calls ``litellm.embedding()`` with LiteLLM's built-in retry,
tagging batches as ``document`` and single queries as ``query`` input.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass

import litellm

from sprig.errors import EmbeddingProviderError

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]

API_KEY_ENV = "VOYAGE_API_KEY"
DEFAULT_MODEL = "voyage-3"


@dataclass(frozen=True)
class ModelSpec:
    dimensions: int
    cost_per_million_tokens: float


# Known Voyage embedding models. Unknown models fall back to voyage-3 figures.
MODEL_SPECS: dict[str, ModelSpec] = {
    "voyage-3": ModelSpec(1024, 0.06),
    "voyage-3-lite": ModelSpec(512, 0.02),
    "voyage-3-large": ModelSpec(1024, 0.18),
    "voyage-3.5": ModelSpec(1024, 0.06),
    "voyage-3.5-lite": ModelSpec(1024, 0.02),
}


class EmbeddingClient(ABC):
    """Provider-agnostic embedding capability."""

    @abstractmethod
    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed document texts. Returns exactly one vector per input, in order.

        Raises:
            EmbeddingProviderError: On transport failure or malformed response.
        """

    @abstractmethod
    def embed_query(self, text: str) -> list[float]:
        """Embed a search query."""

    @property
    @abstractmethod
    def model(self) -> str:
        """Model identifier stored with each indexed file."""

    @property
    @abstractmethod
    def dimensions(self) -> int: ...

    @property
    @abstractmethod
    def cost_per_million_tokens(self) -> float: ...


def litellm_model_name(model: str) -> str:
    """Return *model* in LiteLLM's ``provider/model`` form (Voyage by default)."""
    return model if "/" in model else f"voyage/{model}"


def model_spec(model: str) -> ModelSpec:
    return MODEL_SPECS.get(model.split("/")[-1], MODEL_SPECS[DEFAULT_MODEL])


def api_key_from_env() -> str | None:
    """Return the provider credential from the environment, or None if unset/blank."""
    key = os.getenv(API_KEY_ENV, "").strip()
    return key or None


class LiteLLMEmbeddingClient(EmbeddingClient):
    """Embedding client that calls ``litellm.embedding()``.

    Args:
        api_key:     Provider credential, passed explicitly on every call.
        model:       Model name; bare names are routed to Voyage.
        num_retries: LiteLLM retry count for transient errors.
        timeout:     Per-request timeout in seconds.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        num_retries: int = 3,
        timeout: float = 60.0,
    ) -> None:
        self._api_key = api_key
        self._model = litellm_model_name(model)
        self._spec = model_spec(model)
        self._num_retries = num_retries
        self._timeout = timeout

    @property
    def model(self) -> str:
        return self._model

    @property
    def dimensions(self) -> int:
        return self._spec.dimensions

    @property
    def cost_per_million_tokens(self) -> float:
        return self._spec.cost_per_million_tokens

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        return self._embed(texts, input_type="document")

    def embed_query(self, text: str) -> list[float]:
        return self._embed([text], input_type="query")[0]

    def _embed(self, texts: list[str], input_type: str) -> list[list[float]]:
        try:
            response = litellm.embedding(
                model=self._model,
                input=texts,
                input_type=input_type,
                api_key=self._api_key,
                num_retries=self._num_retries,
                timeout=self._timeout,
            )
        except Exception as exc:
            raise EmbeddingProviderError(f"Embedding request failed: {exc}") from exc

        data = getattr(response, "data", None)
        if not data:
            raise EmbeddingProviderError("Embedding response has no 'data' array")
        if len(data) != len(texts):
            raise EmbeddingProviderError(
                f"Embedding response has {len(data)} vectors for {len(texts)} inputs"
            )

        vectors: list[list[float]] = []
        for item in data:
            try:
                embedding = item["embedding"]
            except (KeyError, TypeError) as exc:
                raise EmbeddingProviderError(
                    "Embedding response item has no 'embedding'"
                ) from exc
            vectors.append([float(v) for v in embedding])
        return vectors
