"""Local Mail Search - hybrid keyword + semantic search for local email.

Features:
- FTS5 keyword index with BM25 ranking
- In-memory cosine similarity search over message embeddings
- Reciprocal Rank Fusion of both rankings
- Pluggable embedding providers (disabled, sentence-transformers, Ollama)

Usage:
    local-mail-search             # Run MCP server (default)
    local-mail-search status      # Show index statistics
    local-mail-search reindex     # Rebuild index from the message store
    local-mail-search backfill    # Repair records missing an account id
    local-mail-search search TEXT # Run a hybrid search
"""

from .cli import main
from .server import mcp

__all__ = ["main", "mcp"]
