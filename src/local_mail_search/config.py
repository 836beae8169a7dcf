"""Configuration for the local mail search index."""

import os
from pathlib import Path

# Default index location
DEFAULT_INDEX_PATH = Path.home() / ".local-mail-search" / "index.db"

# Lexical (FTS5) index file name, stored next to the record index
LEXICAL_INDEX_FILENAME = "search.sqlite"


# ========== Index Configuration ==========


def get_index_path() -> Path:
    """
    Get the search record database path.

    Set MAIL_SEARCH_INDEX_PATH to customize the location.
    Defaults to ~/.local-mail-search/index.db

    Returns:
        Path to the index database file.
    """
    env_path = os.environ.get("MAIL_SEARCH_INDEX_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_INDEX_PATH


def get_lexical_index_path() -> Path:
    """
    Get the FTS5 lexical index database path.

    Set MAIL_SEARCH_LEXICAL_PATH to customize the location.
    Defaults to search.sqlite in the same directory as the record index.

    Returns:
        Path to the lexical index database file.
    """
    env_path = os.environ.get("MAIL_SEARCH_LEXICAL_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return get_index_path().parent / LEXICAL_INDEX_FILENAME


def get_body_excerpt_chars() -> int:
    """
    Get the maximum number of body characters folded into search content.

    Set MAIL_SEARCH_BODY_EXCERPT_CHARS to customize.
    Defaults to 2000 characters.
    """
    return int(os.environ.get("MAIL_SEARCH_BODY_EXCERPT_CHARS", "2000"))


# ========== Search Configuration ==========


def get_vector_search_limit() -> int:
    """
    Get the default top-K for semantic vector search.

    Set MAIL_SEARCH_VECTOR_LIMIT to customize.
    Defaults to 20 results.
    """
    return int(os.environ.get("MAIL_SEARCH_VECTOR_LIMIT", "20"))


def get_lexical_search_limit() -> int:
    """
    Get the default number of candidates pulled from the lexical index.

    Set MAIL_SEARCH_LEXICAL_LIMIT to customize.
    Defaults to 50 results.
    """
    return int(os.environ.get("MAIL_SEARCH_LEXICAL_LIMIT", "50"))


def get_rrf_k() -> float:
    """
    Get the Reciprocal Rank Fusion k constant.

    Larger values flatten the influence of exact rank position.
    Set MAIL_SEARCH_RRF_K to customize. Defaults to 60.
    """
    return float(os.environ.get("MAIL_SEARCH_RRF_K", "60"))


def get_keyword_weight() -> float:
    """
    Get the fusion weight for keyword results.

    Set MAIL_SEARCH_KEYWORD_WEIGHT to customize. Defaults to 1.0.
    """
    return float(os.environ.get("MAIL_SEARCH_KEYWORD_WEIGHT", "1.0"))


def get_semantic_weight() -> float:
    """
    Get the fusion weight for semantic results.

    Set MAIL_SEARCH_SEMANTIC_WEIGHT to customize. Defaults to 1.5.
    """
    return float(os.environ.get("MAIL_SEARCH_SEMANTIC_WEIGHT", "1.5"))


# ========== Embedding Configuration ==========


def get_embedding_provider_name() -> str:
    """
    Get the embedding provider to use for semantic search.

    Set MAIL_SEARCH_EMBEDDING_PROVIDER to one of:
    - "none": keyword-only search (default)
    - "ollama": remote Ollama server
    - "sentence-transformers": on-device model (requires the `local` extra)

    Returns:
        Lower-cased provider name.
    """
    return os.environ.get("MAIL_SEARCH_EMBEDDING_PROVIDER", "none").lower()


def get_ollama_url() -> str:
    """Get the Ollama base URL (MAIL_SEARCH_OLLAMA_URL)."""
    return os.environ.get("MAIL_SEARCH_OLLAMA_URL", "http://127.0.0.1:11434")


def get_ollama_model() -> str:
    """Get the Ollama embedding model name (MAIL_SEARCH_OLLAMA_MODEL)."""
    return os.environ.get("MAIL_SEARCH_OLLAMA_MODEL", "all-minilm")


def get_sentence_transformer_model() -> str:
    """Get the sentence-transformers model name (MAIL_SEARCH_ST_MODEL)."""
    return os.environ.get(
        "MAIL_SEARCH_ST_MODEL", "sentence-transformers/all-MiniLM-L6-v2"
    )
