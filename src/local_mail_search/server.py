"""
Local Mail Search MCP Server

Exposes the hybrid search index to MCP clients.

TOOLS (2 total):
- search(query, account?, limit?) - Hybrid keyword + semantic search
- index_status() - Index statistics
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import TypedDict

from fastmcp import FastMCP

logger = logging.getLogger(__name__)

mcp = FastMCP("Local Mail Search")

# Guards one-time index warm-up (open FTS5, load vectors)
_warmup_lock = threading.Lock()
_warmed_up = False
_provider = None


# ========== Response Type Definitions ==========


class SearchHit(TypedDict, total=False):
    """One fused search result."""

    email_id: str
    account_id: str
    score: float
    matched_in: str
    content_snippet: str


class IndexStatus(TypedDict):
    """Index statistics."""

    records: int
    embedded: int
    accounts: int
    vectors: int
    lexical_open: bool
    db_size_mb: float


# ========== Helper Functions ==========


def _get_index_manager():
    """Get the SearchIndexManager singleton, lazily imported."""
    from .index import SearchIndexManager

    return SearchIndexManager.get_instance()


def _get_provider():
    """Get the configured embedding provider, falling back to disabled."""
    global _provider
    if _provider is None:
        from .providers import DisabledEmbeddingProvider, get_embedding_provider

        try:
            _provider = get_embedding_provider()
        except ValueError as e:
            logger.warning("Semantic search disabled: %s", e)
            _provider = DisabledEmbeddingProvider()
    return _provider


def warm_up() -> bool:
    """
    Open the lexical index and load vectors, once per process.

    Called by the CLI before serving and by the tools on first use.

    Returns:
        True if this call did the work, False if already warm
    """
    global _warmed_up
    with _warmup_lock:
        if _warmed_up:
            return False
        manager = _get_index_manager()
        manager.open_index()
        manager.load_vectors()
        _warmed_up = True
        return True


def _snippet(content: str, max_length: int = 150) -> str:
    """Extract a snippet from content for display."""
    if not content:
        return ""

    text = " ".join(content.split())
    if len(text) <= max_length:
        return text

    return text[:max_length].rsplit(" ", 1)[0] + "..."


def _run_search(
    query: str, account: str | None, limit: int
) -> list[SearchHit]:
    warm_up()
    manager = _get_index_manager()
    results = manager.search(
        query, provider=_get_provider(), limit=limit, account_id=account
    )

    hits: list[SearchHit] = []
    for result in results:
        record = manager.get_record(result.email_id)
        hits.append(
            {
                "email_id": result.email_id,
                "account_id": record.account_id if record else "",
                "score": round(result.score, 5),
                "matched_in": result.match_source.value,
                "content_snippet": _snippet(record.content) if record else "",
            }
        )
    return hits


# ========== Tools ==========


@mcp.tool
async def search(
    query: str,
    account: str | None = None,
    limit: int = 20,
) -> list[SearchHit]:
    """
    Search emails by keyword and meaning.

    Keyword matches come from the FTS5 index. When an embedding provider
    is configured, semantically similar emails are found too, and both
    rankings are fused with Reciprocal Rank Fusion.

    Args:
        query: Search text
        account: Account id to search (optional, all accounts if omitted)
        limit: Maximum results (default: 20)

    Returns:
        Matching emails, most relevant first. matched_in is "keyword",
        "semantic" or "both".

    Examples:
        >>> search("invoice")
        >>> search("trip to the mountains", account="acc-1", limit=5)
    """
    return await asyncio.to_thread(_run_search, query, account, limit)


@mcp.tool
async def index_status() -> IndexStatus:
    """
    Show search index statistics.

    Returns:
        Record, embedding, account and vector counts plus database size.
    """

    def _stats() -> IndexStatus:
        warm_up()
        stats = _get_index_manager().get_stats()
        return {
            "records": stats.record_count,
            "embedded": stats.embedded_count,
            "accounts": stats.account_count,
            "vectors": stats.vector_count,
            "lexical_open": stats.lexical_open,
            "db_size_mb": round(stats.db_size_mb, 2),
        }

    return await asyncio.to_thread(_stats)
