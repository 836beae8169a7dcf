"""SearchIndexManager - single owner of all search index mutations.

Keeps three derived stores in step with the message corpus:
- search_records (SQLite): one SearchRecord per email
- FTS5 lexical index: keyword search over the same content
- VectorIndex (in memory): embeddings for semantic search

Provides:
- open_index() / close_index(): Lexical index lifecycle
- index_email(): Upsert one email into all three stores
- remove_email() / remove_all_for_account(): Deletions
- backfill_account_ids(): Repair records with an empty account_id
- load_vectors(): Rehydrate the vector index at startup
- reindex_all(): Full rebuild from the message store
- search(): Hybrid keyword + semantic search
- get_stats(): Index statistics for status reporting

Failure policy:
The three stores are a best-effort triple, not a transaction. A failure in
one store is logged and the others are still updated; nothing is raised to
the sync engine. reindex_all() and backfill_account_ids() restore
consistency afterwards.

Thread Safety:
- get_instance() uses class-level lock
- _get_conn() uses instance-level lock
- Store mutations are serialized by _store_lock
- Embeddings are computed before _store_lock is taken
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from ..config import (
    LEXICAL_INDEX_FILENAME,
    get_body_excerpt_chars,
    get_index_path,
    get_lexical_index_path,
)
from .embeddings import embed_query
from .lexical import FTS5Index, LexicalIndexError
from .messages import SQLiteMessageStore
from .records import SearchRecord, SearchRecordStore
from .schema import init_database
from .vectors import VectorEntry, VectorIndex

if TYPE_CHECKING:
    from collections.abc import Callable

    from ..providers import EmbeddingProvider
    from .fusion import MergedResult
    from .lexical import LexicalIndex
    from .messages import Message, MessageStore

logger = logging.getLogger(__name__)

# Commit interval for backfill and reindex passes
BATCH_SIZE = 100


@dataclass
class IndexStats:
    """Statistics about the search index."""

    record_count: int
    embedded_count: int
    account_count: int
    vector_count: int
    lexical_open: bool
    db_size_mb: float


def build_search_content(
    message: Message, max_body_chars: int | None = None
) -> str:
    """
    Build the searchable text for a message.

    Joins subject, sender display name, sender address and a body excerpt
    (plain body, falling back to the snippet) with single spaces.

    Args:
        message: Message to index
        max_body_chars: Body excerpt length (default: config value)

    Returns:
        Whitespace-normalized content string
    """
    if max_body_chars is None:
        max_body_chars = get_body_excerpt_chars()

    body = message.body_plain or message.snippet or ""
    body = " ".join(body.split())
    if len(body) > max_body_chars:
        cut = body[:max_body_chars]
        # Drop the trailing word only when the cut splits it
        if body[max_body_chars] != " ":
            cut = cut.rsplit(" ", 1)[0]
        body = cut.rstrip()

    parts = [
        message.subject,
        message.from_name or "",
        message.from_address,
        body,
    ]
    return " ".join(" ".join(part.split()) for part in parts if part.strip())


class SearchIndexManager:
    """
    Manages the derived search corpus for all accounts.

    The record index is stored at ~/.local-mail-search/index.db by default
    with the FTS5 index beside it. Use environment variables to customize:
    - MAIL_SEARCH_INDEX_PATH: Record database location
    - MAIL_SEARCH_LEXICAL_PATH: FTS5 database location
    """

    _instance: SearchIndexManager | None = None
    _instance_lock = threading.Lock()

    def __init__(
        self,
        db_path: Path | None = None,
        lexical: LexicalIndex | None = None,
        vectors: VectorIndex | None = None,
        message_store: MessageStore | None = None,
    ):
        """
        Initialize the SearchIndexManager.

        Args:
            db_path: Record database path (uses config default if None).
                     A custom path also places the FTS5 file beside it.
            lexical: Lexical index (FTS5Index if None)
            vectors: Vector index (new empty VectorIndex if None)
            message_store: Message lookup (reads the messages table if None)
        """
        self._db_path = db_path or get_index_path()
        if lexical is None:
            lexical_path = (
                self._db_path.parent / LEXICAL_INDEX_FILENAME
                if db_path is not None
                else get_lexical_index_path()
            )
            lexical = FTS5Index(lexical_path)
        self._lexical = lexical
        self._vectors = vectors if vectors is not None else VectorIndex()
        self._message_store = message_store
        self._conn: sqlite3.Connection | None = None
        self._conn_lock = threading.Lock()
        self._store_lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> SearchIndexManager:
        """Get the singleton SearchIndexManager instance (thread-safe)."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = SearchIndexManager()
            return cls._instance

    @property
    def db_path(self) -> Path:
        """Get the record database file path."""
        return self._db_path

    @property
    def lexical(self) -> LexicalIndex:
        return self._lexical

    @property
    def vectors(self) -> VectorIndex:
        return self._vectors

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create the database connection (thread-safe)."""
        with self._conn_lock:
            if self._conn is None:
                self._conn = init_database(self._db_path)
            return self._conn

    def _records(self) -> SearchRecordStore:
        return SearchRecordStore(self._get_conn())

    def _messages(self) -> MessageStore:
        if self._message_store is not None:
            return self._message_store
        return SQLiteMessageStore(self._get_conn())

    def has_index(self) -> bool:
        """Check if a record database exists."""
        return self._db_path.exists()

    # ─────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────

    def open_index(self) -> bool:
        """
        Open the lexical index.

        Safe to call when already open. A failure is logged and leaves
        search degraded to semantic-only; it is never raised.

        Returns:
            True if the lexical index is open afterwards
        """
        try:
            self._lexical.open()
        except LexicalIndexError as e:
            logger.warning("Could not open lexical index: %s", e)
        return self._lexical.is_open

    def close_index(self) -> None:
        """Close the lexical index. Safe to call when already closed."""
        self._lexical.close()

    def close(self) -> None:
        """Close the lexical index and the record database connection."""
        self.close_index()
        with self._conn_lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    # ─────────────────────────────────────────────────────────────────
    # Indexing
    # ─────────────────────────────────────────────────────────────────

    def index_email(
        self,
        message: Message,
        provider: EmbeddingProvider | None = None,
    ) -> bool:
        """
        Index one email into the record store, lexical index and vectors.

        Re-indexing an email overwrites its record, lexical row and vector;
        it never creates duplicates. Without a usable provider the record
        is stored with no embedding and any previous vector is evicted.

        Args:
            message: Email to index
            provider: Optional embedding provider

        Returns:
            True if the search record was written
        """
        content = build_search_content(message)

        # May be slow (model inference); must not hold _store_lock
        embedding = None
        if provider is not None:
            embedding = embed_query(content, provider)

        record = SearchRecord(
            email_id=message.email_id,
            account_id=message.account_id,
            content=content,
            embedding=embedding,
        )

        with self._store_lock:
            stored = self._upsert_record(record)

            try:
                self._lexical.upsert(
                    message.email_id, message.account_id, content
                )
            except LexicalIndexError as e:
                logger.warning(
                    "Lexical index upsert failed for %s: %s",
                    message.email_id,
                    e,
                )

            if embedding is not None:
                self._vectors.add(message.email_id, embedding)
            else:
                self._vectors.remove(message.email_id)

        return stored

    def _upsert_record(self, record: SearchRecord) -> bool:
        try:
            conn = self._get_conn()
            SearchRecordStore(conn).upsert(record)
            conn.commit()
            return True
        except sqlite3.Error as e:
            logger.warning(
                "Search record upsert failed for %s: %s", record.email_id, e
            )
            self._rollback()
            return False

    def _rollback(self) -> None:
        if self._conn is not None:
            try:
                self._conn.rollback()
            except sqlite3.Error as e:
                logger.debug("Rollback failed: %s", e)

    # ─────────────────────────────────────────────────────────────────
    # Removal
    # ─────────────────────────────────────────────────────────────────

    def remove_email(self, email_id: str) -> None:
        """
        Remove an email from all three stores.

        No-op for unknown ids.
        """
        with self._store_lock:
            try:
                conn = self._get_conn()
                SearchRecordStore(conn).delete(email_id)
                conn.commit()
            except sqlite3.Error as e:
                logger.warning(
                    "Search record delete failed for %s: %s", email_id, e
                )
                self._rollback()

            try:
                self._lexical.delete(email_id)
            except LexicalIndexError as e:
                logger.warning(
                    "Lexical index delete failed for %s: %s", email_id, e
                )

            self._vectors.remove(email_id)

    def remove_all_for_account(self, account_id: str) -> int:
        """
        Remove every record, lexical row and vector of an account.

        Other accounts are untouched.

        Args:
            account_id: Account being removed

        Returns:
            Number of search records deleted
        """
        deleted = 0
        with self._store_lock:
            email_ids: list[str] = []
            try:
                conn = self._get_conn()
                records = SearchRecordStore(conn)
                email_ids = records.ids_for_account(account_id)
                deleted = records.delete_for_account(account_id)
                conn.commit()
            except sqlite3.Error as e:
                logger.warning(
                    "Search record delete failed for account %s: %s",
                    account_id,
                    e,
                )
                self._rollback()

            try:
                self._lexical.delete_all_for_account(account_id)
            except LexicalIndexError as e:
                logger.warning(
                    "Lexical index delete failed for account %s: %s",
                    account_id,
                    e,
                )

            self._vectors.remove_many(email_ids)

        logger.info(
            "Removed %d search records for account %s", deleted, account_id
        )
        return deleted

    # ─────────────────────────────────────────────────────────────────
    # Repair
    # ─────────────────────────────────────────────────────────────────

    def backfill_account_ids(self) -> int:
        """
        Fill in empty account_id fields from the message store.

        Records written before account ids were tracked have
        ``account_id = ''``. Each is looked up by email id and given its
        owning account. Content and embedding are left as they are;
        records that already have an account are never touched. The
        lexical row is re-tagged with the same content so account-wide
        deletes reach it. Commits every BATCH_SIZE updates.

        Returns:
            Number of records repaired
        """
        updated = 0
        with self._store_lock:
            try:
                conn = self._get_conn()
                records = SearchRecordStore(conn)
                missing = records.ids_missing_account()
                if not missing:
                    return 0

                messages = self._messages()
                for email_id in missing:
                    message = messages.get(email_id)
                    if message is None or not message.account_id:
                        continue

                    records.set_account_id(email_id, message.account_id)
                    updated += 1
                    self._retag_lexical(records, email_id, message.account_id)

                    if updated % BATCH_SIZE == 0:
                        conn.commit()

                conn.commit()
            except sqlite3.Error as e:
                logger.warning("Account id backfill failed: %s", e)
                self._rollback()

        if updated:
            logger.info("Backfilled account ids on %d search records", updated)
        return updated

    def _retag_lexical(
        self, records: SearchRecordStore, email_id: str, account_id: str
    ) -> None:
        record = records.get(email_id)
        if record is None:
            return
        try:
            self._lexical.upsert(email_id, account_id, record.content)
        except LexicalIndexError as e:
            logger.debug("Lexical re-tag failed for %s: %s", email_id, e)

    def load_vectors(self) -> int:
        """
        Rehydrate the vector index from persisted embeddings.

        Replaces whatever the vector index currently holds.

        Returns:
            Number of vectors loaded
        """
        with self._store_lock:
            try:
                entries = [
                    VectorEntry(email_id=email_id, embedding=embedding)
                    for email_id, embedding in self._records().iter_embedded()
                ]
            except sqlite3.Error as e:
                logger.warning("Could not load embeddings: %s", e)
                return 0

            self._vectors.remove_all()
            loaded = self._vectors.load(entries)

        logger.info("Loaded %d vectors from search records", loaded)
        return loaded

    def reindex_all(
        self,
        provider: EmbeddingProvider | None = None,
        account_id: str | None = None,
        progress_callback: Callable[[int, int | None, str], None] | None = None,
    ) -> int:
        """
        Re-index every message in the message store.

        Args:
            provider: Optional embedding provider
            account_id: Only re-index this account (all if None)
            progress_callback: Optional callback(current, total, message)

        Returns:
            Number of emails whose search record was written
        """
        try:
            messages = list(self._messages().iter_messages(account_id))
        except sqlite3.Error as e:
            logger.warning("Cannot read message store for reindex: %s", e)
            return 0

        total = len(messages)
        indexed = 0
        for position, message in enumerate(messages, start=1):
            if self.index_email(message, provider):
                indexed += 1
            if progress_callback and (
                position % BATCH_SIZE == 0 or position == total
            ):
                progress_callback(
                    position, total, f"Indexed {position} of {total} emails..."
                )

        return indexed

    # ─────────────────────────────────────────────────────────────────
    # Search
    # ─────────────────────────────────────────────────────────────────

    def get_record(self, email_id: str) -> SearchRecord | None:
        """Return the stored search record for an email, or None."""
        with self._store_lock:
            try:
                return self._records().get(email_id)
            except sqlite3.Error as e:
                logger.debug("Record lookup failed for %s: %s", email_id, e)
                return None

    def account_for(self, email_id: str) -> str | None:
        """Return the account id recorded for an email, or None."""
        record = self.get_record(email_id)
        return record.account_id if record else None

    def search(
        self,
        query: str,
        provider: EmbeddingProvider | None = None,
        limit: int = 20,
        account_id: str | None = None,
    ) -> list[MergedResult]:
        """
        Hybrid keyword + semantic search over the index.

        Args:
            query: Raw search text
            provider: Embedding provider for the semantic side (optional)
            limit: Maximum results (default: 20)
            account_id: Optional account filter

        Returns:
            Fused results ordered by RRF score
        """
        from .hybrid import HybridSearcher

        searcher = HybridSearcher(
            self._lexical, self._vectors, account_lookup=self.account_for
        )
        return searcher.search(
            query, provider=provider, limit=limit, account_id=account_id
        )

    # ─────────────────────────────────────────────────────────────────
    # Status
    # ─────────────────────────────────────────────────────────────────

    def get_stats(self) -> IndexStats:
        """
        Get index statistics.

        Returns:
            IndexStats with record, embedding, account and vector counts
        """
        with self._store_lock:
            records = self._records()
            record_count = records.count()
            embedded_count = records.count_embedded()
            account_count = records.count_accounts()

        db_size_mb = 0.0
        if self._db_path.exists():
            db_size_mb = self._db_path.stat().st_size / (1024 * 1024)

        return IndexStats(
            record_count=record_count,
            embedded_count=embedded_count,
            account_count=account_count,
            vector_count=self._vectors.count,
            lexical_open=self._lexical.is_open,
            db_size_mb=db_size_mb,
        )
