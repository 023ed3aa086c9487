"""groundwork rich error messages: actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from groundwork.cli.errors import err_no_api_key, err_no_db
    console.print(err_no_api_key("openai"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from groundwork.rag.llm_client import PROVIDER_ENV


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_var = PROVIDER_ENV.get(provider.lower()) or f"{provider.upper()}_API_KEY"
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_no_db(db_path: str = ".groundwork.db") -> str:
    """No corpus database at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  groundwork ingest --collection NAME --source URL"
    )


def err_collection_not_found(name: str, available: list[str]) -> str:
    available_list = ", ".join(available) if available else "(none)"
    return (
        f"[red]Error:[/] Collection '{name}' does not exist.\n"
        f"  Available collections: {available_list}\n"
        f"  Run:  groundwork ingest --collection {name} --source URL"
    )


def err_source_not_found(source: str, collection: str) -> str:
    """Source not found in the collection."""
    return (
        f"[yellow]Source not found:[/] '{source}' is not in collection '{collection}'.\n"
        f"  Run:  groundwork status --collection {collection}  to see its documents."
    )


def err_config(message: str) -> str:
    """Config file or environment variable is invalid."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {message}\n"
        "  Fix groundwork.yaml, ~/.groundwork/config.yaml or the GROUNDWORK_* variables."
    )


def err_request(status: int, message: str) -> str:
    """A pipeline returned ok=False."""
    hints = {
        400: "Check the command arguments.",
        500: "The database may be locked or corrupted. Retry, or remove the .db file and re-ingest.",
        502: "Check that the source is reachable and serves HTML or text.",
        503: "The model provider is unavailable. Check the API key and the model name.",
    }
    hint = hints.get(status, "")
    text = f"[red]Error ({status}):[/] {message}"
    return f"{text}\n  {hint}" if hint else text


def warn_source_failed(source: str, error: str) -> str:
    """One source of an ingest run failed; the others were processed."""
    return f"  [red]✗[/] {source}\n    [dim]{error}[/]"
