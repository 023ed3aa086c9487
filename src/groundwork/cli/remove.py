"""groundwork remove: delete one document from a collection.

Removes the document row, its chunks and their embeddings (all vec tables).

Usage:
  groundwork remove --collection docs --source https://example.com/page
  groundwork remove -c docs -s notes/setup.md --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from groundwork.cli.errors import err_collection_not_found, err_no_db, err_source_not_found
from groundwork.db.connection import DEFAULT_DB_PATH, Database
from groundwork.db.models import Document
from groundwork.db.repository import Repository
from groundwork.ingest.sources import is_url

console = Console()


def remove_cmd(
    collection: Annotated[
        str,
        typer.Option("--collection", "-c", help="Collection holding the source."),
    ],
    source: Annotated[
        str,
        typer.Option("--source", "-s", help="Source URL or file path to remove."),
    ],
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .groundwork.db."),
    ] = DEFAULT_DB_PATH,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove a source and all its chunks from a collection."""
    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)

    with Database(db) as conn:
        repo = Repository(conn)

        found = repo.get_collection(collection)
        if found is None:
            console.print(
                err_collection_not_found(collection, [c.slug for c in repo.list_collections()])
            )
            raise typer.Exit(1)

        existing = _find_document(repo, found.id, source)
        if existing is None:
            console.print(err_source_not_found(source, collection))
            raise typer.Exit(0)

        chunk_count = repo.count_chunks_by_document(existing.id)
        console.print(f"\nRemove source: [bold]{escape(existing.source_url)}[/]")
        console.print(f"  Collection: {collection}  |  Chunks: {chunk_count}")

        if not yes:
            if not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        repo.delete_document(existing.id)
        console.print(f"\n[green]✓[/] Removed: {escape(existing.source_url)}")
        console.print(f"  {chunk_count} chunks and their embeddings deleted")


def _find_document(repo: Repository, collection_id: int, source: str) -> Document | None:
    """Look the source up as given, then as a normalized local path."""
    doc = repo.get_document_by_url(collection_id, source)
    if doc is None and not is_url(source):
        doc = repo.get_document_by_url(collection_id, str(Path(source)))
    return doc
