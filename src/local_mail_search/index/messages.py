"""Read-only access to the message cache owned by the sync engine.

The sync engine discovers and downloads mail; this module only reads what
it stored so the search index can build content and repair account ids.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterator


@dataclass(frozen=True)
class Message:
    """The fields of a message that the search index consumes."""

    email_id: str
    account_id: str
    subject: str = ""
    from_address: str = ""
    from_name: str | None = None
    body_plain: str | None = None
    snippet: str | None = None


class MessageStore(Protocol):
    """Lookup capability over the message corpus."""

    def get(self, email_id: str) -> Message | None: ...

    def iter_messages(
        self, account_id: str | None = None
    ) -> Iterator[Message]: ...


def _row_to_message(row: sqlite3.Row) -> Message:
    return Message(
        email_id=row["email_id"],
        account_id=row["account_id"] or "",
        subject=row["subject"] or "",
        from_address=row["from_address"] or "",
        from_name=row["from_name"],
        body_plain=row["body_plain"],
        snippet=row["snippet"],
    )


class SQLiteMessageStore:
    """MessageStore backed by the ``messages`` table."""

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def get(self, email_id: str) -> Message | None:
        """Return the message with this id, or None if unknown."""
        cursor = self._conn.execute(
            "SELECT * FROM messages WHERE email_id = ?", (email_id,)
        )
        row = cursor.fetchone()
        return _row_to_message(row) if row else None

    def iter_messages(self, account_id: str | None = None) -> Iterator[Message]:
        """Iterate over all messages, optionally for one account."""
        if account_id:
            cursor = self._conn.execute(
                "SELECT * FROM messages WHERE account_id = ? ORDER BY email_id",
                (account_id,),
            )
        else:
            cursor = self._conn.execute(
                "SELECT * FROM messages ORDER BY email_id"
            )
        for row in cursor.fetchall():
            yield _row_to_message(row)
