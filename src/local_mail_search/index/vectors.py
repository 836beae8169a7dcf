"""In-memory vector index for semantic email search.

Holds one embedding per email and answers brute-force cosine similarity
queries with numpy. Vectors of different dimensionality can coexist (for
example across embedding model upgrades); a query only ever compares
against vectors of its own dimensionality.

Thread Safety:
- All reads and writes go through a single threading.Lock
- search() snapshots matching vectors under the lock, then scores them
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from ..config import get_vector_search_limit

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VectorEntry:
    """An embedding for one email, used to bulk-load the index."""

    email_id: str
    embedding: np.ndarray


@dataclass(frozen=True)
class VectorSearchResult:
    """A single semantic match."""

    email_id: str
    similarity: float


def _as_vector(values: Sequence[float] | np.ndarray) -> np.ndarray:
    return np.asarray(values, dtype=np.float32).reshape(-1)


class VectorIndex:
    """
    Thread-safe map of ``email_id -> embedding`` with cosine search.

    Adding an email that is already present replaces its vector, so the
    index never holds more than one entry per email.
    """

    def __init__(self) -> None:
        self._vectors: dict[str, np.ndarray] = {}
        self._lock = threading.Lock()

    def add(
        self, email_id: str, embedding: Sequence[float] | np.ndarray
    ) -> None:
        """Insert or replace the vector for an email."""
        vector = _as_vector(embedding)
        with self._lock:
            self._vectors[email_id] = vector

    def remove(self, email_id: str) -> None:
        """Remove an email's vector. No-op if it is not indexed."""
        with self._lock:
            self._vectors.pop(email_id, None)

    def remove_many(self, email_ids: Iterable[str]) -> None:
        """Remove several vectors under one lock acquisition."""
        with self._lock:
            for email_id in email_ids:
                self._vectors.pop(email_id, None)

    def remove_all(self) -> None:
        """Clear the index."""
        with self._lock:
            self._vectors.clear()

    def load(self, entries: Iterable[VectorEntry]) -> int:
        """
        Bulk insert or replace entries.

        Entries with an empty embedding are skipped.

        Args:
            entries: Vectors to load (typically rehydrated search records)

        Returns:
            Number of entries loaded
        """
        prepared = [
            (entry.email_id, _as_vector(entry.embedding)) for entry in entries
        ]
        loaded = 0
        with self._lock:
            for email_id, vector in prepared:
                if vector.size == 0:
                    continue
                self._vectors[email_id] = vector
                loaded += 1
        logger.debug("Loaded %d vectors into index", loaded)
        return loaded

    @property
    def count(self) -> int:
        """Number of vectors currently stored."""
        with self._lock:
            return len(self._vectors)

    def __contains__(self, email_id: object) -> bool:
        with self._lock:
            return email_id in self._vectors

    def search(
        self,
        query: Sequence[float] | np.ndarray,
        limit: int | None = None,
    ) -> list[VectorSearchResult]:
        """
        Find the stored vectors most similar to ``query``.

        Similarity is cosine: ``dot(q, v) / (|q| * |v|)``. Stored vectors
        whose dimensionality differs from the query are skipped. Zero-norm
        vectors score 0.0.

        Args:
            query: Query embedding
            limit: Maximum results (default: MAIL_SEARCH_VECTOR_LIMIT)

        Returns:
            Up to ``limit`` results sorted by similarity, highest first
        """
        if limit is None:
            limit = get_vector_search_limit()

        q = _as_vector(query)
        if q.size == 0 or limit <= 0:
            return []

        dim = q.size
        with self._lock:
            matching = [
                (email_id, vector)
                for email_id, vector in self._vectors.items()
                if vector.size == dim
            ]

        if not matching:
            return []

        ids = [email_id for email_id, _ in matching]
        matrix = np.vstack([vector for _, vector in matching]).astype(
            np.float64
        )
        q64 = q.astype(np.float64)

        dots = matrix @ q64
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q64)
        similarities = np.divide(
            dots, norms, out=np.zeros_like(dots), where=norms > 0
        )

        # Stable sort keeps insertion order among equal similarities
        order = np.argsort(-similarities, kind="stable")[:limit]
        return [
            VectorSearchResult(
                email_id=ids[i], similarity=float(similarities[i])
            )
            for i in order
        ]
