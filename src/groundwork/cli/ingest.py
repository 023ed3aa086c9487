"""groundwork ingest: fetch sources and index them into a collection.

Source dispatch:
  https:// / http://            → web fetch (SSRF-guarded) → Markdown
  .html .htm                    → local file → Markdown
  .md .markdown .txt .text      → local file as-is

The collection is created on first use. Re-ingesting a source replaces its
chunks and embeddings.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from groundwork.cli.errors import err_config, err_no_api_key, err_request, warn_source_failed
from groundwork.config import ConfigError, load_config
from groundwork.db.connection import DEFAULT_DB_PATH, Database
from groundwork.db.repository import Repository
from groundwork.pipeline.ingest import (
    IngestPipeline,
    IngestRequest,
    IngestResponse,
    SourceReport,
)
from groundwork.rag.llm_client import provider_of, validate_api_key

console = Console()


def ingest_cmd(
    collection: Annotated[
        str,
        typer.Option("--collection", "-c", help="Collection to ingest into (created if missing)."),
    ],
    source: Annotated[
        list[str] | None,
        typer.Option("--source", "-s", help="Source URL or file path (repeatable)."),
    ] = None,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .groundwork.db (created if missing)."),
    ] = DEFAULT_DB_PATH,
    json_out: Annotated[
        bool,
        typer.Option("--json", help="Print the response envelope as JSON."),
    ] = False,
) -> None:
    """Ingest one or more sources into a collection."""
    sources = source or []
    if not sources:
        console.print("[red]Error:[/] No --source specified. Use --source URL_OR_PATH.")
        raise typer.Exit(1)

    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc

    try:
        validate_api_key(cfg.embedding.model)
    except EnvironmentError as exc:
        console.print(err_no_api_key(provider_of(cfg.embedding.model)))
        raise typer.Exit(1) from exc

    request = IngestRequest(collection=collection, sources=sources)
    with Database(db) as conn:
        pipeline = IngestPipeline(Repository(conn), cfg)
        if json_out:
            response = pipeline.run(request)
        else:
            response = _run_with_progress(pipeline, request)

    if json_out:
        typer.echo(json.dumps(response.to_dict(), ensure_ascii=False, indent=2))
        if not response.ok:
            raise typer.Exit(1)
        return

    if not response.ok:
        console.print(err_request(response.status, response.error or "Ingest failed."))
        raise typer.Exit(1)

    failed = sum(1 for r in response.reports if r.error)
    console.print(
        f"\n[bold]{response.indexed}[/] chunks indexed into '[bold]{collection}[/]' "
        f"from {len(response.reports) - failed}/{len(response.reports)} sources"
    )


# ------------------------------------------------------------------
# Progress display
# ------------------------------------------------------------------


def _run_with_progress(pipeline: IngestPipeline, request: IngestRequest) -> IngestResponse:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
        console=console,
    ) as prog:
        task = prog.add_task(f"Ingesting {len(request.sources)} source(s)…", total=None)

        def _on_source(report: SourceReport) -> None:
            prog.console.print(_format_report(report))
            prog.update(task, description=f"Ingested {report.source}")

        return pipeline.run(request, on_source=_on_source)


def _format_report(report: SourceReport) -> str:
    source = escape(report.source)
    if report.error:
        return warn_source_failed(source, escape(report.error))
    if report.chunks == 0:
        return f"  [yellow]✗[/] {source} [dim](no text to index)[/]"
    verb = "replaced" if report.replaced else "new"
    title = f": {escape(report.title)}" if report.title else ""
    return (
        f"  [green]✓[/] {source}{title}\n"
        f"    [dim]{report.chunks} chunks · {report.normalized_length:,} chars · {verb}[/]"
    )

