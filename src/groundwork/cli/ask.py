"""groundwork ask: answer a question from one collection, with citations.

Exit codes:
  0  answered, or refused for lack of evidence
  1  invalid request, unknown collection, storage or provider failure
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from groundwork.cli.errors import (
    err_collection_not_found,
    err_config,
    err_no_api_key,
    err_no_db,
    err_request,
)
from groundwork.config import ConfigError, load_config
from groundwork.db.connection import DEFAULT_DB_PATH, Database
from groundwork.db.repository import Repository
from groundwork.pipeline.ask import AskPipeline, AskRequest, AskResponse
from groundwork.rag.llm_client import provider_of, validate_api_key

console = Console()


def ask_cmd(
    question: Annotated[str, typer.Argument(help="Question to answer.")],
    collection: Annotated[
        str,
        typer.Option("--collection", "-c", help="Collection to answer from."),
    ],
    k: Annotated[
        int | None,
        typer.Option("--top-k", "-k", min=1, help="Chunks to retrieve (default: retrieval.top_k)."),
    ] = None,
    lang: Annotated[
        str | None,
        typer.Option("--lang", help="Answer language: es | en (default: config language)."),
    ] = None,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .groundwork.db."),
    ] = DEFAULT_DB_PATH,
    json_out: Annotated[
        bool,
        typer.Option("--json", help="Print the response envelope as JSON."),
    ] = False,
) -> None:
    """Answer QUESTION strictly from the ingested sources of a collection."""
    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)

    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc

    for model in (cfg.embedding.model, cfg.generation.model):
        try:
            validate_api_key(model)
        except EnvironmentError as exc:
            console.print(err_no_api_key(provider_of(model)))
            raise typer.Exit(1) from exc

    with Database(db) as conn:
        repo = Repository(conn)
        response = AskPipeline(repo, cfg).run(
            AskRequest(question=question, collection=collection, k=k, language=lang)
        )
        available = [c.slug for c in repo.list_collections()] if response.status == 404 else []

    if json_out:
        typer.echo(json.dumps(response.to_dict(), ensure_ascii=False, indent=2))
        if not response.ok:
            raise typer.Exit(1)
        return

    if not response.ok:
        if response.status == 404:
            console.print(err_collection_not_found(collection, available))
        else:
            console.print(err_request(response.status, response.error or "Ask failed."))
        raise typer.Exit(1)

    _print_answer(response)


def _print_answer(response: AskResponse) -> None:
    if response.refused:
        console.print(f"[yellow]{escape(response.answer)}[/]")
        diag = response.diagnostics
        if diag is not None:
            console.print(
                f"[dim]retrieved {diag.retrieved} · top similarity {diag.top_similarity:.2f} "
                f"(threshold {diag.threshold:.2f}) · keyword match: "
                f"{'yes' if diag.keyword_ok else 'no'}[/]"
            )
        return

    console.print(response.answer, markup=False)
    if not response.citations:
        return

    table = Table(show_header=True, box=None, padding=(0, 1))
    table.add_column("#", style="bold", justify="right")
    table.add_column("Source")
    table.add_column("Similarity", style="dim", justify="right")
    for citation in response.citations:
        source = escape(citation.url)
        if citation.title:
            source = f"{escape(citation.title)}\n[dim]{source}[/]"
        table.add_row(str(citation.n), source, f"{citation.similarity:.2f}")
    console.print()
    console.print(table)
