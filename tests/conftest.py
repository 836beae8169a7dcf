"""Shared pytest fixtures for local-mail-search tests."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from local_mail_search.index.messages import Message
from local_mail_search.index.schema import (
    INSERT_MESSAGE_SQL,
    SCHEMA_VERSION,
    get_schema_sql,
)


class StubProvider:
    """Embedding provider returning canned vectors keyed by text."""

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        default: list[float] | None = None,
        available: bool = True,
    ):
        self.vectors = vectors or {}
        self.default = default if default is not None else [1.0, 0.0, 0.0]
        self.available = available
        self.calls: list[str] = []

    def is_available(self) -> bool:
        return self.available

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        return self.vectors.get(text, self.default)


class RaisingProvider:
    """Provider that reports available but always fails."""

    def is_available(self) -> bool:
        return True

    def embed(self, text: str) -> list[float]:
        raise RuntimeError("model crashed")


@pytest.fixture
def temp_db():
    """Create an in-memory database with the schema."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.executescript(get_schema_sql())
    conn.execute(
        "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
    )
    conn.commit()
    yield conn
    conn.close()


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    """Return a temporary path for a database file."""
    return tmp_path / "test_index.db"


@pytest.fixture
def sample_messages() -> list[Message]:
    """Return sample messages across two accounts."""
    return [
        Message(
            email_id="msg-1",
            account_id="acc-work",
            subject="Meeting tomorrow at 3pm",
            from_address="boss@company.com",
            from_name="The Boss",
            body_plain="Please review the quarterly report before the meeting.",
        ),
        Message(
            email_id="msg-2",
            account_id="acc-work",
            subject="Invoice #12345 attached",
            from_address="billing@vendor.com",
            body_plain="Your invoice for January is attached. Total: $500",
        ),
        Message(
            email_id="msg-3",
            account_id="acc-home",
            subject="Weekend hiking trip",
            from_address="friend@example.com",
            from_name="Sam",
            snippet="Shall we climb the mountain on Saturday?",
        ),
    ]


@pytest.fixture
def populated_db_path(
    temp_db_path: Path, sample_messages: list[Message]
) -> Path:
    """Database file with the schema and sample messages inserted.

    Uses INSERT_MESSAGE_SQL from schema.py to stay consistent with
    production code.
    """
    from local_mail_search.index.schema import init_database

    conn = init_database(temp_db_path)
    for message in sample_messages:
        conn.execute(
            INSERT_MESSAGE_SQL,
            (
                message.email_id,
                message.account_id,
                message.subject,
                message.from_address,
                message.from_name,
                message.body_plain,
                message.snippet,
            ),
        )
    conn.commit()
    conn.close()
    return temp_db_path


@pytest.fixture
def stub_provider() -> StubProvider:
    return StubProvider()


@pytest.fixture
def unavailable_provider() -> StubProvider:
    return StubProvider(available=False)


@pytest.fixture
def raising_provider() -> RaisingProvider:
    return RaisingProvider()


@pytest.fixture
def manager(populated_db_path: Path):
    """SearchIndexManager on a temp database with an open lexical index."""
    from local_mail_search.index.manager import SearchIndexManager

    mgr = SearchIndexManager(db_path=populated_db_path)
    mgr.open_index()
    yield mgr
    mgr.close()


@pytest.fixture
def make_provider():
    """Factory for StubProviders with custom vectors."""
    return StubProvider
