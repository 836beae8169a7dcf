"""Structured search record store.

One SearchRecord per email: account, concatenated search content and an
optional unit-length embedding. Records are derived data and can always
be rebuilt from the message corpus.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from .schema import UPSERT_RECORD_SQL, blob_to_embedding, embedding_to_blob

if TYPE_CHECKING:
    from collections.abc import Iterator


@dataclass
class SearchRecord:
    """The persisted search view of one email."""

    email_id: str
    account_id: str
    content: str
    embedding: np.ndarray | None = None


def _row_to_record(row: sqlite3.Row) -> SearchRecord:
    return SearchRecord(
        email_id=row["email_id"],
        account_id=row["account_id"] or "",
        content=row["content"] or "",
        embedding=blob_to_embedding(row["embedding"]),
    )


class SearchRecordStore:
    """
    Data access for the ``search_records`` table.

    Methods do not commit unless noted; SearchIndexManager owns the
    transaction boundaries.
    """

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    def upsert(self, record: SearchRecord) -> None:
        """Insert the record, or update the existing row for its email."""
        self._conn.execute(
            UPSERT_RECORD_SQL,
            (
                record.email_id,
                record.account_id,
                record.content,
                embedding_to_blob(record.embedding),
            ),
        )

    def get(self, email_id: str) -> SearchRecord | None:
        cursor = self._conn.execute(
            "SELECT * FROM search_records WHERE email_id = ?", (email_id,)
        )
        row = cursor.fetchone()
        return _row_to_record(row) if row else None

    def delete(self, email_id: str) -> int:
        """Delete one record. Returns the number of rows removed."""
        cursor = self._conn.execute(
            "DELETE FROM search_records WHERE email_id = ?", (email_id,)
        )
        return cursor.rowcount

    def ids_for_account(self, account_id: str) -> list[str]:
        cursor = self._conn.execute(
            "SELECT email_id FROM search_records WHERE account_id = ?",
            (account_id,),
        )
        return [row[0] for row in cursor]

    def delete_for_account(self, account_id: str) -> int:
        """Delete every record of an account. Returns rows removed."""
        cursor = self._conn.execute(
            "DELETE FROM search_records WHERE account_id = ?", (account_id,)
        )
        return cursor.rowcount

    def ids_missing_account(self) -> list[str]:
        """Email ids of records whose account_id was never filled in."""
        cursor = self._conn.execute(
            "SELECT email_id FROM search_records WHERE account_id = ''"
        )
        return [row[0] for row in cursor]

    def set_account_id(self, email_id: str, account_id: str) -> None:
        """Fill in account_id only; content and embedding are untouched."""
        self._conn.execute(
            "UPDATE search_records SET account_id = ? "
            "WHERE email_id = ? AND account_id = ''",
            (account_id, email_id),
        )

    def iter_embedded(self) -> Iterator[tuple[str, np.ndarray]]:
        """Yield ``(email_id, embedding)`` for records that have one."""
        cursor = self._conn.execute(
            "SELECT email_id, embedding FROM search_records "
            "WHERE embedding IS NOT NULL"
        )
        for row in cursor.fetchall():
            embedding = blob_to_embedding(row["embedding"])
            if embedding is not None:
                yield row["email_id"], embedding

    def count(self) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM search_records"
        ).fetchone()[0]

    def count_embedded(self) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM search_records WHERE embedding IS NOT NULL"
        ).fetchone()[0]

    def count_accounts(self) -> int:
        return self._conn.execute(
            "SELECT COUNT(DISTINCT account_id) FROM search_records "
            "WHERE account_id != ''"
        ).fetchone()[0]
