"""groundwork status command.

Without --collection: one row per collection with document and chunk counts,
followed by the vec tables and their vector counts.
With --collection: one row per document of that collection.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from groundwork.cli.errors import err_collection_not_found, err_no_db
from groundwork.db.connection import DEFAULT_DB_PATH, Database
from groundwork.db.models import Collection
from groundwork.db.repository import Repository
from groundwork.db.vectors import list_vec_tables

console = Console()


def status_cmd(
    collection: Annotated[
        str | None,
        typer.Option("--collection", "-c", help="Show the documents of one collection."),
    ] = None,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .groundwork.db."),
    ] = DEFAULT_DB_PATH,
) -> None:
    """Show collections, documents and index sizes."""
    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)

    with Database(db) as conn:
        repo = Repository(conn)
        if collection is None:
            _show_overview(db, repo)
            return

        found = repo.get_collection(collection)
        if found is None:
            console.print(
                err_collection_not_found(collection, [c.slug for c in repo.list_collections()])
            )
            raise typer.Exit(1)
        _show_collection(found, repo)


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------


def _show_overview(db: Path, repo: Repository) -> None:
    size_mb = db.stat().st_size / (1024 * 1024)
    collections = repo.list_collections()

    if not collections:
        console.print(
            Panel(
                f"Database:  {db} ({size_mb:.1f} MB)\n"
                "[dim]No collections yet.[/]\n"
                "  Run:  groundwork ingest --collection NAME --source URL",
                title="[bold]Corpus[/]",
                expand=False,
            )
        )
        return

    table = Table(show_header=True, box=None, padding=(0, 1))
    table.add_column("Collection", style="bold")
    table.add_column("Documents", justify="right")
    table.add_column("Chunks", justify="right")
    table.add_column("Created", style="dim")
    for c in collections:
        table.add_row(
            c.slug,
            f"{len(repo.list_documents(c.id)):,}",
            f"{repo.count_chunks_by_collection(c.id):,}",
            (c.created_at or "")[:16],
        )

    vec_lines = [
        f"  [dim]{name}[/] ({repo.count_embeddings(name):,} vectors)"
        for name in list_vec_tables(repo.connection)
    ]
    footer = "\n".join([f"Database:  {db} ({size_mb:.1f} MB)", *vec_lines])

    console.print(Panel(table, title="[bold]Collections[/]", expand=False))
    console.print(footer)


def _show_collection(collection: Collection, repo: Repository) -> None:
    documents = repo.list_documents(collection.id)
    if not documents:
        console.print(f"[dim]Collection '{collection.slug}' has no documents.[/]")
        return

    table = Table(show_header=True, box=None, padding=(0, 1))
    table.add_column("Source")
    table.add_column("Title")
    table.add_column("Chunks", justify="right")
    table.add_column("Ingested", style="dim")
    for doc in documents:
        table.add_row(
            escape(doc.source_url),
            escape(doc.title or ""),
            f"{repo.count_chunks_by_document(doc.id):,}",
            (doc.ingested_at or "")[:16],
        )
    console.print(
        Panel(
            table,
            title=f"[bold]{collection.slug}[/] [dim]({len(documents)} documents)[/]",
            expand=False,
        )
    )
