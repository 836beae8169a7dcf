"""Embedding providers for semantic search.

Every provider exposes the same two-method capability:
- is_available(): whether embed() can currently be called
- embed(text): return a raw embedding vector

Providers are interchangeable; the index never inspects which one it got.

Available providers:
- DisabledEmbeddingProvider: keyword-only mode, never available
- SentenceTransformerProvider: on-device sentence-transformers model
- OllamaEmbeddingProvider: remote Ollama server over HTTP
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx

from .config import (
    get_embedding_provider_name,
    get_ollama_model,
    get_ollama_url,
    get_sentence_transformer_model,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


class EmbeddingProviderError(Exception):
    """Raised when a provider fails to produce an embedding."""


class EngineUnavailableError(EmbeddingProviderError):
    """Raised when embed() is called on a provider that is not available."""

    def __init__(self, message: str = "Embedding engine is not available"):
        super().__init__(message)


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Capability consumed by the embedding helpers and the index manager."""

    def is_available(self) -> bool: ...

    def embed(self, text: str) -> Sequence[float]: ...


class DisabledEmbeddingProvider:
    """Provider used when semantic search is turned off."""

    def is_available(self) -> bool:
        return False

    def embed(self, text: str) -> Sequence[float]:
        raise EngineUnavailableError()


class SentenceTransformerProvider:
    """
    Wraps an already constructed sentence-transformers model.

    The caller owns the model; this class never loads or unloads it.
    """

    def __init__(self, model: Any):
        self._model = model

    def is_available(self) -> bool:
        return self._model is not None

    def embed(self, text: str) -> Sequence[float]:
        if self._model is None:
            raise EngineUnavailableError()
        vector = self._model.encode(text, convert_to_numpy=True)
        return vector.tolist()


class OllamaEmbeddingProvider:
    """
    Embeddings from an Ollama server's /api/embed endpoint.

    Availability is checked via /api/tags. A positive answer is cached; a
    negative one is checked again once ``retry_after`` seconds have passed.
    refresh_availability() forces a new check.
    """

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float = 15.0,
        client: httpx.Client | None = None,
        retry_after: float = 30.0,
    ):
        self._base_url = (base_url or get_ollama_url()).rstrip("/")
        self._model = model or get_ollama_model()
        self._client = client or httpx.Client(timeout=timeout)
        self._available: bool | None = None
        self._retry_after = retry_after
        self._checked_at = 0.0

    @property
    def model(self) -> str:
        return self._model

    def refresh_availability(self) -> bool:
        """Ask the server whether it answers and cache the result."""
        try:
            resp = self._client.get(f"{self._base_url}/api/tags")
            resp.raise_for_status()
            self._available = True
        except httpx.HTTPError as e:
            logger.info("Ollama not reachable at %s: %s", self._base_url, e)
            self._available = False
        self._checked_at = time.monotonic()
        return self._available

    def is_available(self) -> bool:
        if self._available is None:
            return self.refresh_availability()
        if not self._available and (
            time.monotonic() - self._checked_at >= self._retry_after
        ):
            return self.refresh_availability()
        return self._available

    def embed(self, text: str) -> Sequence[float]:
        if not self.is_available():
            raise EngineUnavailableError()
        try:
            resp = self._client.post(
                f"{self._base_url}/api/embed",
                json={"model": self._model, "input": text},
            )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise EmbeddingProviderError(f"Ollama embed failed: {e}") from e

        embeddings = data.get("embeddings") or []
        if not embeddings:
            return []
        return embeddings[0]

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()


def get_embedding_provider(name: str | None = None) -> EmbeddingProvider:
    """
    Build the provider selected by MAIL_SEARCH_EMBEDDING_PROVIDER.

    Args:
        name: Provider name override ("none", "ollama",
              "sentence-transformers")

    Returns:
        A provider instance

    Raises:
        ValueError: If the name is not recognised
    """
    name = (name or get_embedding_provider_name()).lower()

    if name in ("none", "disabled", ""):
        return DisabledEmbeddingProvider()

    if name == "ollama":
        return OllamaEmbeddingProvider()

    if name in ("sentence-transformers", "sentence_transformers", "local"):
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as e:
            raise ValueError(
                "sentence-transformers is not installed. "
                "Install with: pip install 'local-mail-search[local]'"
            ) from e

        model_name = get_sentence_transformer_model()
        logger.info("Using sentence-transformers model %s", model_name)
        return SentenceTransformerProvider(SentenceTransformer(model_name))

    raise ValueError(f"Unknown embedding provider: {name}")
