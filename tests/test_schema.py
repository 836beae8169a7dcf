"""Tests for SQLite schema and database initialization."""

from __future__ import annotations

import os
import sqlite3
import stat
from pathlib import Path

import numpy as np
import pytest

from local_mail_search.index.schema import (
    SCHEMA_VERSION,
    blob_to_embedding,
    embedding_to_blob,
    init_database,
)


class TestSchemaSQL:
    """Tests for schema SQL generation."""

    @pytest.mark.parametrize(
        "table", ["schema_version", "search_records", "messages"]
    )
    def test_schema_creates_required_tables(
        self, temp_db: sqlite3.Connection, table
    ):
        """Schema creates all required tables."""
        cursor = temp_db.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            (table,),
        )
        assert cursor.fetchone() is not None

    def test_email_id_is_unique(self, temp_db: sqlite3.Connection):
        """At most one search record exists per email."""
        temp_db.execute(
            "INSERT INTO search_records (email_id, account_id, content) "
            "VALUES ('e1', 'acc', 'one')"
        )
        with pytest.raises(sqlite3.IntegrityError):
            temp_db.execute(
                "INSERT INTO search_records (email_id, account_id, content) "
                "VALUES ('e1', 'acc', 'two')"
            )

    def test_account_id_defaults_to_empty(self, temp_db: sqlite3.Connection):
        temp_db.execute(
            "INSERT INTO search_records (email_id, content) VALUES ('e1', 'x')"
        )
        row = temp_db.execute(
            "SELECT account_id FROM search_records WHERE email_id = 'e1'"
        ).fetchone()
        assert row[0] == ""


class TestEmbeddingBlobs:
    def test_round_trip(self):
        vector = np.array([0.25, -0.5, 1.0], dtype=np.float32)

        restored = blob_to_embedding(embedding_to_blob(vector))

        assert restored.dtype == np.float32
        assert restored.tolist() == [0.25, -0.5, 1.0]

    def test_none_stays_none(self):
        assert embedding_to_blob(None) is None
        assert blob_to_embedding(None) is None

    def test_empty_blob_is_none(self):
        assert blob_to_embedding(b"") is None


class TestInitDatabase:
    """Tests for database initialization."""

    def test_creates_database_file(self, temp_db_path: Path):
        conn = init_database(temp_db_path)
        assert temp_db_path.exists()
        conn.close()

    def test_creates_parent_directories(self, tmp_path: Path):
        deep_path = tmp_path / "a" / "b" / "c" / "index.db"
        conn = init_database(deep_path)
        assert deep_path.exists()
        conn.close()

    def test_sets_wal_mode(self, temp_db_path: Path):
        conn = init_database(temp_db_path)
        cursor = conn.execute("PRAGMA journal_mode")
        mode = cursor.fetchone()[0]
        assert mode.lower() == "wal"
        conn.close()

    def test_stores_schema_version(self, temp_db_path: Path):
        conn = init_database(temp_db_path)
        cursor = conn.execute("SELECT version FROM schema_version")
        version = cursor.fetchone()[0]
        assert version == SCHEMA_VERSION
        conn.close()

    def test_sets_secure_permissions(self, tmp_path: Path):
        """New database files should have 0600 permissions (owner only)."""
        db_path = tmp_path / "secure_test.db"
        conn = init_database(db_path)
        conn.close()

        mode = stat.S_IMODE(os.stat(db_path).st_mode)
        assert mode == 0o600

    def test_reopen_existing_database(self, temp_db_path: Path):
        """Opening twice keeps data and does not recreate the schema."""
        conn = init_database(temp_db_path)
        conn.execute(
            "INSERT INTO search_records (email_id, account_id, content) "
            "VALUES ('e1', 'acc', 'kept')"
        )
        conn.commit()
        conn.close()

        conn = init_database(temp_db_path)
        row = conn.execute("SELECT content FROM search_records").fetchone()
        assert row[0] == "kept"
        conn.close()


class TestMigrations:
    """Tests for schema migration from v1."""

    def _create_v1_database(self, path: Path) -> None:
        conn = sqlite3.connect(path)
        conn.executescript(
            """
            CREATE TABLE schema_version (version INTEGER PRIMARY KEY);
            INSERT INTO schema_version (version) VALUES (1);
            CREATE TABLE search_records (
                email_id TEXT PRIMARY KEY,
                content TEXT NOT NULL DEFAULT '',
                embedding BLOB,
                indexed_at TEXT DEFAULT (datetime('now'))
            );
            INSERT INTO search_records (email_id, content)
                VALUES ('legacy-1', 'old content');
            """
        )
        conn.commit()
        conn.close()

    def test_v1_to_v2_adds_account_id(self, temp_db_path: Path):
        self._create_v1_database(temp_db_path)

        conn = init_database(temp_db_path)

        row = conn.execute(
            "SELECT account_id, content FROM search_records "
            "WHERE email_id = 'legacy-1'"
        ).fetchone()
        assert row["account_id"] == ""
        assert row["content"] == "old content"
        conn.close()

    def test_v1_to_v2_updates_version(self, temp_db_path: Path):
        self._create_v1_database(temp_db_path)

        conn = init_database(temp_db_path)

        version = conn.execute("SELECT version FROM schema_version").fetchone()
        assert version[0] == SCHEMA_VERSION
        conn.close()

    def test_v1_to_v2_creates_messages_table(self, temp_db_path: Path):
        self._create_v1_database(temp_db_path)

        conn = init_database(temp_db_path)

        cursor = conn.execute(
            "SELECT name FROM sqlite_master "
            "WHERE type='table' AND name='messages'"
        )
        assert cursor.fetchone() is not None
        conn.close()
