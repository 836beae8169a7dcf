"""FTS5 lexical index for keyword email search.

Keeps its own SQLite database (search.sqlite) separate from the search
record store. One FTS5 row per email:

    email_fts(email_id UNINDEXED, account_id UNINDEXED, content)

Provides:
- LexicalIndex: the contract SearchIndexManager and HybridSearcher consume
- FTS5Index: SQLite FTS5 implementation with BM25 ranking
- sanitize_fts_query(): Turn raw user text into a safe prefix MATCH query
"""

from __future__ import annotations

import logging
import re
import sqlite3
import threading
from pathlib import Path
from typing import Protocol

from .schema import create_connection

logger = logging.getLogger(__name__)

# Characters with FTS5 query meaning; stripped before quoting
_FTS5_SPECIAL = re.compile(r'["*():^{}]')

# SQLite messages that mean the file is unusable and should be recreated
_CORRUPT_MARKERS = (
    "file is not a database",
    "database disk image is malformed",
)

CREATE_FTS_SQL = """
CREATE VIRTUAL TABLE IF NOT EXISTS email_fts USING fts5(
    email_id UNINDEXED,
    account_id UNINDEXED,
    content,
    tokenize='unicode61 remove_diacritics 2'
);
"""


class LexicalIndexError(Exception):
    """Raised when the lexical index cannot complete an operation."""


class IndexNotOpenError(LexicalIndexError):
    """Raised when the lexical index is used before open() or after close()."""

    def __init__(self, message: str = "Lexical index is not open"):
        super().__init__(message)


class LexicalIndex(Protocol):
    """Keyword index contract."""

    def open(self) -> None: ...

    def close(self) -> None: ...

    @property
    def is_open(self) -> bool: ...

    def upsert(self, email_id: str, account_id: str, content: str) -> None: ...

    def delete(self, email_id: str) -> None: ...

    def delete_all_for_account(self, account_id: str) -> None: ...

    def search(
        self,
        query: str,
        limit: int = 50,
        account_id: str | None = None,
    ) -> list[str]: ...


def sanitize_fts_query(query: str) -> str:
    """
    Build a safe FTS5 MATCH expression from raw user text.

    Each term is stripped of FTS5 syntax characters and wrapped in double
    quotes, so operators and column filters are matched literally. The
    last term gets a trailing ``*`` for search-as-you-type prefix matching.
    Terms are implicitly ANDed.

    Args:
        query: Raw user query

    Returns:
        MATCH expression, or "" if nothing searchable remains

    Example:
        >>> sanitize_fts_query('quarterly "report" 2024')
        '"quarterly" "report" "2024"*'
    """
    if not query or not query.strip():
        return ""

    terms = [
        term
        for term in _FTS5_SPECIAL.sub(" ", query).split()
        if any(ch.isalnum() for ch in term)
    ]
    if not terms:
        return ""

    quoted = ['"' + term + '"' for term in terms]
    quoted[-1] += "*"
    return " ".join(quoted)


def _is_corrupt(error: sqlite3.Error) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in _CORRUPT_MARKERS)


class FTS5Index:
    """
    SQLite FTS5 implementation of LexicalIndex.

    Thread Safety:
    - One connection guarded by an instance-level lock
    - Connection uses check_same_thread=False
    """

    def __init__(self, db_path: Path):
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> None:
        """
        Open the database and create the FTS5 table if needed.

        No-op when already open. A corrupt database file is deleted and
        recreated once.

        Raises:
            LexicalIndexError: If the database cannot be opened
        """
        with self._lock:
            if self._conn is not None:
                return
            try:
                self._conn = self._connect()
            except sqlite3.DatabaseError as e:
                if not _is_corrupt(e):
                    raise LexicalIndexError(
                        f"Cannot open lexical index: {e}"
                    ) from e
                logger.warning(
                    "Lexical index at %s is corrupt, recreating: %s",
                    self._db_path,
                    e,
                )
                self._db_path.unlink(missing_ok=True)
                try:
                    self._conn = self._connect()
                except sqlite3.Error as retry_error:
                    raise LexicalIndexError(
                        f"Cannot recreate lexical index: {retry_error}"
                    ) from retry_error

    def _connect(self) -> sqlite3.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = create_connection(self._db_path)
        try:
            conn.executescript(CREATE_FTS_SQL)
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    def close(self) -> None:
        """Close the database. Safe to call when already closed."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise IndexNotOpenError()
        return self._conn

    def upsert(self, email_id: str, account_id: str, content: str) -> None:
        """
        Insert or replace the row for an email.

        FTS5 has no REPLACE, so the old row is deleted first.
        """
        with self._lock:
            conn = self._require_conn()
            try:
                with conn:
                    conn.execute(
                        "DELETE FROM email_fts WHERE email_id = ?", (email_id,)
                    )
                    conn.execute(
                        "INSERT INTO email_fts(email_id, account_id, content) "
                        "VALUES (?, ?, ?)",
                        (email_id, account_id, content),
                    )
            except sqlite3.Error as e:
                raise LexicalIndexError(f"Upsert failed: {e}") from e

    def delete(self, email_id: str) -> None:
        """Delete an email's row. No-op if absent."""
        with self._lock:
            conn = self._require_conn()
            try:
                with conn:
                    conn.execute(
                        "DELETE FROM email_fts WHERE email_id = ?", (email_id,)
                    )
            except sqlite3.Error as e:
                raise LexicalIndexError(f"Delete failed: {e}") from e

    def delete_all_for_account(self, account_id: str) -> None:
        """Delete every row belonging to an account."""
        with self._lock:
            conn = self._require_conn()
            try:
                with conn:
                    conn.execute(
                        "DELETE FROM email_fts WHERE account_id = ?",
                        (account_id,),
                    )
            except sqlite3.Error as e:
                raise LexicalIndexError(f"Delete failed: {e}") from e

    def search(
        self,
        query: str,
        limit: int = 50,
        account_id: str | None = None,
    ) -> list[str]:
        """
        Search by keyword with BM25 ranking.

        Args:
            query: Raw user query (sanitized here)
            limit: Maximum results (default: 50)
            account_id: Optional account filter

        Returns:
            Email ids, best match first (list position + 1 is the rank)

        Raises:
            IndexNotOpenError: If the index is closed
            LexicalIndexError: On database failure
        """
        safe_query = sanitize_fts_query(query)
        if not safe_query:
            return []

        sql = "SELECT email_id FROM email_fts WHERE email_fts MATCH ?"
        params: list = [safe_query]
        if account_id:
            sql += " AND account_id = ?"
            params.append(account_id)
        # bm25() is negative; more negative is a better match
        sql += " ORDER BY bm25(email_fts), rowid LIMIT ?"
        params.append(limit)

        with self._lock:
            conn = self._require_conn()
            try:
                cursor = conn.execute(sql, params)
                return [row["email_id"] for row in cursor]
            except sqlite3.Error as e:
                raise LexicalIndexError(f"Search failed: {e}") from e

    def count(self) -> int:
        """Number of rows in the index."""
        with self._lock:
            conn = self._require_conn()
            return conn.execute("SELECT COUNT(*) FROM email_fts").fetchone()[0]

    def count_for(self, email_id: str) -> int:
        """Number of rows stored for one email (0 or 1 when consistent)."""
        with self._lock:
            conn = self._require_conn()
            cursor = conn.execute(
                "SELECT COUNT(*) FROM email_fts WHERE email_id = ?", (email_id,)
            )
            return cursor.fetchone()[0]

    def get_content(self, email_id: str) -> str | None:
        """Return the indexed content for an email, or None."""
        with self._lock:
            conn = self._require_conn()
            cursor = conn.execute(
                "SELECT content FROM email_fts WHERE email_id = ?", (email_id,)
            )
            row = cursor.fetchone()
            return row["content"] if row else None
