"""Hybrid search index for locally stored email.

This module provides:
- SearchIndexManager: Keeps search records, FTS5 and vectors in sync
- VectorIndex: In-memory cosine similarity search
- merge(): Reciprocal Rank Fusion of keyword and semantic rankings
- embed_query() / embed_batch() / normalize(): Embedding generation
- HybridSearcher: Query path combining all of the above
"""

from .embeddings import embed_batch, embed_query, normalize
from .fusion import MatchSource, MergedResult, RankedItem, merge, rank_items
from .hybrid import HybridSearcher
from .lexical import FTS5Index, IndexNotOpenError, LexicalIndexError
from .manager import IndexStats, SearchIndexManager
from .messages import Message, SQLiteMessageStore
from .records import SearchRecord
from .vectors import VectorEntry, VectorIndex, VectorSearchResult

__all__ = [
    "FTS5Index",
    "HybridSearcher",
    "IndexNotOpenError",
    "IndexStats",
    "LexicalIndexError",
    "MatchSource",
    "MergedResult",
    "Message",
    "RankedItem",
    "SQLiteMessageStore",
    "SearchIndexManager",
    "SearchRecord",
    "VectorEntry",
    "VectorIndex",
    "VectorSearchResult",
    "embed_batch",
    "embed_query",
    "merge",
    "normalize",
    "rank_items",
]
