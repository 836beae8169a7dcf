"""Command-line interface for local-mail-search.

Provides commands for:
- serve: Run the MCP server (default)
- status: Show index statistics
- reindex: Rebuild the index from the message store
- backfill: Repair search records that are missing an account id
- search: Run a hybrid search from the terminal

Usage:
    local-mail-search                 # Run MCP server (default)
    local-mail-search serve           # Run MCP server explicitly
    local-mail-search status          # Show index status
    local-mail-search reindex -v      # Rebuild index with progress
    local-mail-search backfill        # Fill in missing account ids
    local-mail-search search "query"  # Search from the terminal
"""

import logging
import sys
import time
from typing import Annotated

import cyclopts

from .config import get_index_path, get_lexical_index_path

app = cyclopts.App(
    name="local-mail-search",
    help="Hybrid keyword + semantic search index for local email.",
)


def _format_size(size_mb: float) -> str:
    """Format file size for display."""
    if size_mb < 1:
        return f"{size_mb * 1024:.1f} KB"
    return f"{size_mb:.1f} MB"


def _format_time(seconds: float) -> str:
    """Format duration for display."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds // 60)
    secs = seconds % 60
    return f"{minutes}m {secs:.1f}s"


def _progress_bar(current: int, total: int | None, width: int = 40) -> str:
    """Create a progress bar string."""
    if total is None or total == 0:
        # Indeterminate progress
        return f"[{'=' * (current % width)}>]"

    pct = min(current / total, 1.0)
    filled = int(width * pct)
    bar = "=" * filled + "-" * (width - filled)
    return f"[{bar}] {pct * 100:.0f}%"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load_provider():
    """Build the configured embedding provider, exiting on bad config."""
    from .providers import get_embedding_provider

    try:
        return get_embedding_provider()
    except ValueError as e:
        print(f"✗ {e}", file=sys.stderr)
        sys.exit(1)


def _run_serve() -> None:
    """Internal function to run the MCP server."""
    from .index import SearchIndexManager
    from .server import mcp, warm_up

    manager = SearchIndexManager.get_instance()

    if manager.has_index():
        start = time.time()
        warm_up()
        if not manager.lexical.is_open:
            print(
                "Warning: Keyword index unavailable, semantic search only",
                file=sys.stderr,
            )
        count = manager.vectors.count
        elapsed = time.time() - start
        print(
            f"Loaded {count:,} vectors in {_format_time(elapsed)}",
            file=sys.stderr,
        )

    mcp.run()


@app.command
def serve(
    verbose: Annotated[
        bool,
        cyclopts.Parameter(
            name=["--verbose", "-v"],
            help="Enable verbose output",
        ),
    ] = False,
) -> None:
    """
    Run the MCP server.

    This is the default command when no subcommand is specified.
    At startup the keyword index is opened and stored embeddings are
    loaded into memory.
    """
    _configure_logging(verbose)
    _run_serve()


@app.command
def status() -> None:
    """
    Show index statistics.

    Displays:
    - Record, embedding and account counts
    - Index locations and database size
    """
    from .index import SearchIndexManager

    manager = SearchIndexManager()

    if not manager.has_index():
        print("No index found.")
        print(f"Expected location: {get_index_path()}")
        print()
        print("Run 'local-mail-search reindex' to build the index.")
        sys.exit(1)

    manager.open_index()
    stats = manager.get_stats()
    manager.close()

    print("Local Mail Search Index Status")
    print("=" * 40)
    print(f"Location:     {get_index_path()}")
    print(f"Keyword idx:  {get_lexical_index_path()}")
    print(f"Records:      {stats.record_count:,}")
    print(f"Embedded:     {stats.embedded_count:,}")
    print(f"Accounts:     {stats.account_count}")
    print(f"Database:     {_format_size(stats.db_size_mb)}")

    if stats.record_count and not stats.embedded_count:
        print()
        print("⚠ No embeddings stored. Semantic search is inactive.")


@app.command
def reindex(
    account: Annotated[
        str | None,
        cyclopts.Parameter(
            name=["--account", "-a"],
            help="Reindex only this account (all if not specified)",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        cyclopts.Parameter(name=["--verbose", "-v"], help="Show progress"),
    ] = False,
) -> None:
    """
    Rebuild the search index from the message store.

    Every message is re-indexed into the record store, the keyword index
    and (when an embedding provider is configured) the vector index.
    """
    _configure_logging(verbose)
    from .index import SearchIndexManager

    scope = f"account {account}" if account else "all accounts"
    print(f"Reindexing {scope}...")
    print(f"Index location: {get_index_path()}")

    provider = _load_provider()
    manager = SearchIndexManager()
    manager.open_index()
    start = time.time()

    def progress(current: int, total: int | None, message: str) -> None:
        if verbose:
            bar = _progress_bar(current, total)
            print(f"\r{bar} {message}", end="", flush=True)

    try:
        count = manager.reindex_all(
            provider=provider,
            account_id=account,
            progress_callback=progress if verbose else None,
        )
        elapsed = time.time() - start

        if verbose:
            print()

        print(f"✓ Indexed {count:,} emails in {_format_time(elapsed)}")
    except Exception as e:
        print(f"\n✗ Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        manager.close()


@app.command
def backfill() -> None:
    """
    Fill in missing account ids on existing search records.

    Needed once after upgrading from an index that did not record
    account ids. Content and embeddings are not changed.
    """
    from .index import SearchIndexManager

    manager = SearchIndexManager()
    if not manager.has_index():
        print("No index found.", file=sys.stderr)
        sys.exit(1)

    manager.open_index()
    try:
        count = manager.backfill_account_ids()
    finally:
        manager.close()

    print(f"✓ Backfilled {count:,} records")


@app.command
def search(
    query: str,
    limit: Annotated[
        int,
        cyclopts.Parameter(name=["--limit", "-n"], help="Maximum results"),
    ] = 20,
    account: Annotated[
        str | None,
        cyclopts.Parameter(name=["--account", "-a"], help="Account filter"),
    ] = None,
) -> None:
    """Run a hybrid search and print the ranked email ids."""
    from .index import SearchIndexManager

    manager = SearchIndexManager()
    if not manager.has_index():
        print("No index found.", file=sys.stderr)
        sys.exit(1)

    provider = _load_provider()
    manager.open_index()
    manager.load_vectors()
    try:
        results = manager.search(
            query, provider=provider, limit=limit, account_id=account
        )
    finally:
        manager.close()

    if not results:
        print("No matches.")
        return

    for position, result in enumerate(results, start=1):
        print(
            f"{position:>3}. {result.email_id}  "
            f"{result.score:.5f}  ({result.match_source.value})"
        )


@app.default
def default_handler(
    verbose: Annotated[
        bool,
        cyclopts.Parameter(
            name=["--verbose", "-v"],
            help="Enable verbose output",
        ),
    ] = False,
) -> None:
    """Run the MCP server (default when no command specified)."""
    _configure_logging(verbose)
    _run_serve()


def main() -> None:
    """Entry point for the CLI."""
    app()
