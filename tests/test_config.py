"""Tests for environment-driven configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from local_mail_search import config


class TestIndexPaths:
    def test_default_index_path(self, monkeypatch):
        monkeypatch.delenv("MAIL_SEARCH_INDEX_PATH", raising=False)
        assert config.get_index_path() == config.DEFAULT_INDEX_PATH

    def test_index_path_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("MAIL_SEARCH_INDEX_PATH", str(tmp_path / "i.db"))
        assert config.get_index_path() == tmp_path / "i.db"

    def test_lexical_path_follows_index_path(self, monkeypatch, tmp_path):
        monkeypatch.setenv("MAIL_SEARCH_INDEX_PATH", str(tmp_path / "i.db"))
        monkeypatch.delenv("MAIL_SEARCH_LEXICAL_PATH", raising=False)
        assert config.get_lexical_index_path() == tmp_path / "search.sqlite"

    def test_lexical_path_override(self, monkeypatch):
        monkeypatch.setenv("MAIL_SEARCH_LEXICAL_PATH", "~/fts.sqlite")
        assert config.get_lexical_index_path() == (
            Path.home() / "fts.sqlite"
        )


class TestSearchSettings:
    """Defaults and overrides for numeric search settings."""

    @pytest.mark.parametrize(
        "getter, expected",
        [
            (config.get_vector_search_limit, 20),
            (config.get_lexical_search_limit, 50),
            (config.get_rrf_k, 60.0),
            (config.get_keyword_weight, 1.0),
            (config.get_semantic_weight, 1.5),
            (config.get_body_excerpt_chars, 2000),
        ],
    )
    def test_defaults(self, monkeypatch, getter, expected):
        for var in (
            "MAIL_SEARCH_VECTOR_LIMIT",
            "MAIL_SEARCH_LEXICAL_LIMIT",
            "MAIL_SEARCH_RRF_K",
            "MAIL_SEARCH_KEYWORD_WEIGHT",
            "MAIL_SEARCH_SEMANTIC_WEIGHT",
            "MAIL_SEARCH_BODY_EXCERPT_CHARS",
        ):
            monkeypatch.delenv(var, raising=False)
        assert getter() == expected

    def test_rrf_k_override(self, monkeypatch):
        monkeypatch.setenv("MAIL_SEARCH_RRF_K", "10")
        assert config.get_rrf_k() == 10.0

    def test_provider_name_is_lowercased(self, monkeypatch):
        monkeypatch.setenv("MAIL_SEARCH_EMBEDDING_PROVIDER", "Ollama")
        assert config.get_embedding_provider_name() == "ollama"
