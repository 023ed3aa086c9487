"""groundwork CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from groundwork.cli.ask import ask_cmd
from groundwork.cli.ingest import ingest_cmd
from groundwork.cli.remove import remove_cmd
from groundwork.cli.status import status_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("groundwork")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"groundwork {_installed_version()}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    """Route library logging through rich; DEBUG with --verbose, warnings otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # litellm and the HTTP stack are noisy at DEBUG
    for name in ("LiteLLM", "litellm", "httpx", "httpcore", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)


app = typer.Typer(
    name="groundwork",
    help=(
        "groundwork: grounded question answering over your own sources.\n\n"
        "  groundwork ingest  Fetch sources and index them into a collection.\n"
        "  groundwork ask     Answer from a collection with citations, or refuse."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log pipeline steps (DEBUG) to stderr."),
    ] = False,
) -> None:
    """groundwork: grounded question answering over your own sources."""
    _configure_logging(verbose)


app.command("ingest")(ingest_cmd)
app.command("ask")(ask_cmd)
app.command("status")(status_cmd)
app.command("remove")(remove_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed groundwork version."""
    typer.echo(f"groundwork {_installed_version()}")


if __name__ == "__main__":
    app()
