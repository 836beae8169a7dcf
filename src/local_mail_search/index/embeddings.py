"""Embedding generation with graceful degradation.

Wraps an EmbeddingProvider so that every failure (provider unavailable,
provider error, empty vector) becomes "no embedding" rather than an
exception. Callers fall back to keyword-only search in that case.

All returned vectors are L2-normalized float32 arrays.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..providers import EmbeddingProvider

logger = logging.getLogger(__name__)


def normalize(vector: Sequence[float] | np.ndarray) -> np.ndarray:
    """
    Scale a vector to unit L2 norm.

    A zero vector is returned unchanged to avoid dividing by zero.

    Example:
        >>> normalize([3.0, 4.0]).tolist()
        [0.6000000238418579, 0.800000011920929]
    """
    arr = np.asarray(vector, dtype=np.float32).reshape(-1)
    norm = float(np.linalg.norm(arr.astype(np.float64)))
    if norm == 0.0:
        return arr
    return (arr / norm).astype(np.float32)


def _embed_one(text: str, provider: EmbeddingProvider) -> np.ndarray | None:
    """Embed one text, assuming the provider already reported available."""
    try:
        raw = provider.embed(text)
    except Exception as e:
        # Provider implementations raise arbitrary errors; all mean "no vector"
        logger.debug("Embedding failed: %s", e)
        return None

    if raw is None or len(raw) == 0:
        return None
    return normalize(raw)


def embed_query(text: str, provider: EmbeddingProvider) -> np.ndarray | None:
    """
    Embed a search query or email content.

    Args:
        text: Text to embed
        provider: Embedding provider

    Returns:
        Unit-length vector, or None if the provider is unavailable,
        fails, or returns an empty vector
    """
    if not _is_available(provider):
        return None
    return _embed_one(text, provider)


def embed_batch(
    texts: Sequence[str], provider: EmbeddingProvider
) -> list[np.ndarray | None]:
    """
    Embed several texts independently.

    Output position i corresponds to ``texts[i]``. One failing text does
    not affect the others.

    Args:
        texts: Texts to embed
        provider: Embedding provider

    Returns:
        List of unit-length vectors or None, same length as ``texts``
    """
    if not texts:
        return []
    if not _is_available(provider):
        return [None] * len(texts)
    return [_embed_one(text, provider) for text in texts]


def _is_available(provider: EmbeddingProvider) -> bool:
    try:
        return bool(provider.is_available())
    except Exception as e:
        logger.debug("Embedding provider availability check failed: %s", e)
        return False
