"""Hybrid keyword + semantic search.

Search flow:
1. Keyword search on the lexical index (failure -> no keyword results)
2. Embed the query (no provider or failure -> no semantic results)
3. Cosine search on the vector index
4. Fuse both rankings with Reciprocal Rank Fusion

Either side may be empty; the other still produces results.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..config import (
    get_keyword_weight,
    get_lexical_search_limit,
    get_rrf_k,
    get_semantic_weight,
    get_vector_search_limit,
)
from .embeddings import embed_query
from .fusion import MergedResult, merge, rank_items
from .lexical import LexicalIndexError

if TYPE_CHECKING:
    from collections.abc import Callable

    from ..providers import EmbeddingProvider
    from .lexical import LexicalIndex
    from .vectors import VectorIndex

logger = logging.getLogger(__name__)


class HybridSearcher:
    """Runs a query against both indexes and fuses the rankings."""

    def __init__(
        self,
        lexical: LexicalIndex,
        vectors: VectorIndex,
        account_lookup: Callable[[str], str | None] | None = None,
    ):
        """
        Args:
            lexical: Keyword index
            vectors: Semantic index
            account_lookup: Maps an email id to its account id; used to
                scope semantic results when searching one account
        """
        self._lexical = lexical
        self._vectors = vectors
        self._account_lookup = account_lookup

    def keyword_search(
        self, query: str, account_id: str | None = None
    ) -> list[str]:
        """Lexical ranking for ``query``; empty on any index failure."""
        if not self._lexical.is_open:
            return []
        try:
            return self._lexical.search(
                query, limit=get_lexical_search_limit(), account_id=account_id
            )
        except LexicalIndexError as e:
            logger.warning("Keyword search failed: %s", e)
            return []

    def semantic_search(
        self,
        query: str,
        provider: EmbeddingProvider | None,
        account_id: str | None = None,
    ) -> list[str]:
        """Semantic ranking for ``query``; empty without an embedding."""
        if provider is None or not query.strip():
            return []
        embedding = embed_query(query, provider)
        if embedding is None:
            return []
        limit = get_vector_search_limit()
        if not account_id or self._account_lookup is None:
            results = self._vectors.search(embedding, limit=limit)
            return [result.email_id for result in results]

        # Vectors carry no account; rank everything, filter, then truncate
        results = self._vectors.search(embedding, limit=self._vectors.count)
        email_ids = []
        for result in results:
            if self._account_lookup(result.email_id) == account_id:
                email_ids.append(result.email_id)
                if len(email_ids) >= limit:
                    break
        return email_ids

    def search(
        self,
        query: str,
        provider: EmbeddingProvider | None = None,
        limit: int = 20,
        account_id: str | None = None,
    ) -> list[MergedResult]:
        """
        Hybrid search.

        Args:
            query: Raw search text
            provider: Embedding provider for the semantic side (optional)
            limit: Maximum fused results (default: 20)
            account_id: Optional account filter

        Returns:
            Fused results, best first
        """
        if not query or not query.strip():
            return []

        keyword_ids = self.keyword_search(query, account_id=account_id)
        semantic_ids = self.semantic_search(
            query, provider, account_id=account_id
        )

        merged = merge(
            rank_items(keyword_ids),
            rank_items(semantic_ids),
            k=get_rrf_k(),
            keyword_weight=get_keyword_weight(),
            semantic_weight=get_semantic_weight(),
        )
        return merged[:limit]
