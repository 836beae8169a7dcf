"""SQLite schema for the structured search record store.

The schema uses:
- search_records: One derived search record per email (content + embedding)
- messages: Read-only message cache written by the sync engine

The lexical FTS5 index lives in its own database file (see lexical.py), so
the record store and the keyword index can fail and be repaired
independently.

IMPORTANT: search_records is a rebuildable cache, not a source of truth.
email_id is the primary key, so at most one record exists per email.
"""

import logging
import os
import sqlite3
from pathlib import Path

import numpy as np

logger = logging.getLogger(__name__)

# Current schema version for migrations
SCHEMA_VERSION = 2  # Bumped for account_id on search_records

# Default PRAGMAs for all connections (centralized to avoid drift)
DEFAULT_PRAGMAS = {
    "journal_mode": "WAL",  # Better concurrent read performance
    "synchronous": "NORMAL",  # Good balance of safety and speed
    "busy_timeout": 5000,  # Wait up to 5s for locks
}

# Centralized SQL for record upserts (used by manager and reindex)
# ON CONFLICT keeps one row per email_id and refreshes every column
UPSERT_RECORD_SQL = """INSERT INTO search_records
    (email_id, account_id, content, embedding)
    VALUES (?, ?, ?, ?)
    ON CONFLICT(email_id) DO UPDATE SET
        account_id = excluded.account_id,
        content = excluded.content,
        embedding = excluded.embedding,
        indexed_at = datetime('now')"""

# Centralized SQL for message cache inserts (used by tests and sync tools)
INSERT_MESSAGE_SQL = """INSERT OR REPLACE INTO messages
    (email_id, account_id, subject, from_address, from_name, body_plain,
     snippet)
    VALUES (?, ?, ?, ?, ?, ?, ?)"""

# Stored embeddings are little-endian float32
EMBEDDING_DTYPE = np.dtype("<f4")


def embedding_to_blob(embedding: np.ndarray | None) -> bytes | None:
    """
    Serialize an embedding vector for the BLOB column.

    Args:
        embedding: Vector to store, or None for "no embedding"

    Returns:
        Raw float32 bytes, or None
    """
    if embedding is None:
        return None
    return np.asarray(embedding, dtype=EMBEDDING_DTYPE).tobytes()


def blob_to_embedding(blob: bytes | None) -> np.ndarray | None:
    """
    Deserialize a BLOB column back into a float32 vector.

    Empty or missing blobs map to None so callers never see a
    zero-length embedding.
    """
    if not blob:
        return None
    return np.frombuffer(blob, dtype=EMBEDDING_DTYPE).astype(np.float32)


def create_connection(db_path: Path | str) -> sqlite3.Connection:
    """
    Create a database connection with standard configuration.

    This factory ensures consistent PRAGMA settings across all connection
    points (SearchIndexManager, FTS5Index, CLI) to prevent configuration
    drift.

    Args:
        db_path: Path to the SQLite database file

    Returns:
        Configured connection with WAL mode, busy timeout, and Row factory
    """
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row

    # Apply standard PRAGMAs; the first one fails on a non-database file
    try:
        for pragma, value in DEFAULT_PRAGMAS.items():
            conn.execute(f"PRAGMA {pragma}={value}")
    except sqlite3.Error:
        conn.close()
        raise

    return conn


def get_schema_sql() -> str:
    """Return the complete schema creation SQL."""
    return """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

-- Derived search records (one per email)
CREATE TABLE IF NOT EXISTS search_records (
    email_id TEXT PRIMARY KEY,
    account_id TEXT NOT NULL DEFAULT '',  -- '' on legacy rows, backfilled
    content TEXT NOT NULL DEFAULT '',     -- subject + sender + body excerpt
    embedding BLOB,                       -- float32, unit length, or NULL
    indexed_at TEXT DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_search_records_account
    ON search_records(account_id);

-- Message cache (owned by the sync engine, read-only here)
CREATE TABLE IF NOT EXISTS messages (
    email_id TEXT PRIMARY KEY,
    account_id TEXT NOT NULL,
    subject TEXT,
    from_address TEXT,
    from_name TEXT,
    body_plain TEXT,
    snippet TEXT
);

CREATE INDEX IF NOT EXISTS idx_messages_account
    ON messages(account_id);
"""


def init_database(db_path: Path) -> sqlite3.Connection:
    """
    Initialize the database with schema, creating parent directories if needed.

    Args:
        db_path: Path to the SQLite database file

    Returns:
        Open database connection with check_same_thread=False for thread safety

    Security:
        Sets file permissions to 0600 (owner read/write only) on new databases
        to protect sensitive email content from other users on shared systems.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    is_new_db = not db_path.exists()

    conn = create_connection(db_path)

    # Must be done after sqlite3.connect() creates the file
    if is_new_db:
        try:
            os.chmod(db_path, 0o600)
            logger.debug("Set secure permissions (0600) on %s", db_path)
        except OSError as e:
            logger.warning(
                "Could not set secure permissions on %s: %s", db_path, e
            )

    sql = "SELECT name FROM sqlite_master "
    sql += "WHERE type='table' AND name='schema_version'"
    cursor = conn.execute(sql)
    if cursor.fetchone() is None:
        logger.info(
            "Creating fresh database schema (version %d)", SCHEMA_VERSION
        )
        conn.executescript(get_schema_sql())
        conn.execute(
            "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
        )
        conn.commit()
    else:
        cursor = conn.execute("SELECT version FROM schema_version LIMIT 1")
        row = cursor.fetchone()
        current_version = row[0] if row else 0

        if current_version < SCHEMA_VERSION:
            logger.info(
                "Migrating database from version %d to %d",
                current_version,
                SCHEMA_VERSION,
            )
            _run_migrations(conn, current_version, SCHEMA_VERSION)

    return conn


def _run_migrations(
    conn: sqlite3.Connection, from_version: int, to_version: int
) -> None:
    """
    Run schema migrations.

    Args:
        conn: Database connection
        from_version: Current schema version
        to_version: Target schema version
    """
    if from_version < 2:
        # v1 records had no account_id. Existing rows get '' and are
        # repaired by SearchIndexManager.backfill_account_ids().
        logger.info("Migrating schema v1→v2: adding account_id column")

        conn.execute(
            "ALTER TABLE search_records "
            "ADD COLUMN account_id TEXT NOT NULL DEFAULT ''"
        )
        # Creates the account index and the messages table if missing
        conn.executescript(get_schema_sql())

        logger.info(
            "Migration v1→v2 complete. Run 'local-mail-search backfill' "
            "to fill in account ids for existing records."
        )

    conn.execute("UPDATE schema_version SET version = ?", (to_version,))
    conn.commit()
