"""Tests for CLI commands and formatting helpers."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from local_mail_search import cli, server
from local_mail_search.index.manager import SearchIndexManager


class TestFormatting:
    @pytest.mark.parametrize(
        "size_mb, expected", [(0.5, "512.0 KB"), (12.34, "12.3 MB")]
    )
    def test_format_size(self, size_mb, expected):
        assert cli._format_size(size_mb) == expected

    @pytest.mark.parametrize(
        "seconds, expected", [(4.3, "4.3s"), (125.0, "2m 5.0s")]
    )
    def test_format_time(self, seconds, expected):
        assert cli._format_time(seconds) == expected

    def test_progress_bar_percentage(self):
        bar = cli._progress_bar(50, 100, width=10)
        assert bar == "[=====-----] 50%"

    def test_progress_bar_caps_at_full(self):
        assert cli._progress_bar(150, 100, width=4) == "[====] 100%"

    def test_progress_bar_indeterminate(self):
        assert cli._progress_bar(3, None, width=10) == "[===>]"


@pytest.fixture
def index_env(monkeypatch, populated_db_path):
    """Point the CLI at a populated temp database."""
    monkeypatch.setenv("MAIL_SEARCH_INDEX_PATH", str(populated_db_path))
    monkeypatch.delenv("MAIL_SEARCH_LEXICAL_PATH", raising=False)
    monkeypatch.setenv("MAIL_SEARCH_EMBEDDING_PROVIDER", "none")
    return populated_db_path


class TestCommands:
    """End-to-end command runs against a temp index."""

    def test_status_without_index(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setenv("MAIL_SEARCH_INDEX_PATH", str(tmp_path / "no.db"))

        with pytest.raises(SystemExit) as exc:
            cli.status()

        assert exc.value.code == 1
        assert "No index found" in capsys.readouterr().out

    def test_reindex_then_status(self, index_env, capsys):
        cli.reindex()
        cli.status()

        out = capsys.readouterr().out
        assert "Indexed 3 emails" in out
        assert "Records:      3" in out
        assert "Accounts:     2" in out
        assert "No embeddings stored" in out

    def test_search_prints_ranked_ids(self, index_env, capsys):
        cli.reindex()
        capsys.readouterr()

        cli.search("invoice")

        out = capsys.readouterr().out
        assert "msg-2" in out
        assert "(keyword)" in out

    def test_search_no_matches(self, index_env, capsys):
        cli.reindex()
        capsys.readouterr()

        cli.search("zzzunmatched")

        assert "No matches." in capsys.readouterr().out

    def test_backfill_with_nothing_to_do(self, index_env, capsys):
        cli.reindex()
        capsys.readouterr()

        cli.backfill()

        assert "Backfilled 0 records" in capsys.readouterr().out

    def test_bad_provider_exits(self, index_env, monkeypatch, capsys):
        monkeypatch.setenv("MAIL_SEARCH_EMBEDDING_PROVIDER", "bogus")

        with pytest.raises(SystemExit):
            cli.reindex()

        assert "Unknown embedding provider" in capsys.readouterr().err

    def teardown_method(self):
        SearchIndexManager._instance = None


class TestServe:
    """Tests for the serve startup path."""

    def setup_method(self):
        SearchIndexManager._instance = None
        server._warmed_up = False

    def teardown_method(self):
        if SearchIndexManager._instance is not None:
            SearchIndexManager._instance.close()
        SearchIndexManager._instance = None
        server._warmed_up = False

    def test_serve_warms_index_once(self, index_env, capsys):
        """Tools do not reload vectors that serve already loaded."""
        cli.reindex()
        capsys.readouterr()

        with patch.object(server.mcp, "run") as run:
            cli._run_serve()

        run.assert_called_once()
        assert "Loaded 0 vectors" in capsys.readouterr().err
        assert SearchIndexManager.get_instance().lexical.is_open
        assert server.warm_up() is False
