"""Sprig rich error messages with actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from sprig.cli.errors import err_no_api_key
    console.print(err_no_api_key())
    raise typer.Exit(1)
"""

from __future__ import annotations

from sprig.ingest.embeddings import API_KEY_ENV


def err_no_api_key() -> str:
    """No embedding credential in the environment."""
    return (
        "[red]Error:[/] No embedding API key set.\n"
        f"  Set:  export {API_KEY_ENV}=pa-..."
    )


def err_search_disabled() -> str:
    """semantic_search.enabled is false."""
    return (
        "[red]Error:[/] Semantic search is disabled for this project.\n"
        "  Enable it in sprig.yaml:\n"
        "    semantic_search:\n"
        "      enabled: true\n"
        "  or run with  SPRIG_SEMANTIC_SEARCH=1"
    )


def err_not_a_project(path: str) -> str:
    return (
        f"[red]Error:[/] Project directory not found: '{path}'\n"
        "  Pass an existing directory with  --project PATH"
    )


def err_config(message: str) -> str:
    """Config file is invalid or contains a forbidden key."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {message}\n"
        "  Fix sprig.yaml or ~/.sprig/config.yaml and try again."
    )


def err_file_not_found(rel_path: str) -> str:
    return (
        f"[red]Error:[/] File not found: '{rel_path}'\n"
        "  Paths are relative to the project directory, e.g.  characters/alice/profile.md"
    )


def err_provider(message: str) -> str:
    """Embedding request failed after retries."""
    return (
        f"[red]Error:[/] Embedding provider request failed.\n"
        f"  {message}\n"
        f"  Check your network connection and that {API_KEY_ENV} is valid, then retry."
    )


def err_storage(message: str) -> str:
    return (
        f"[red]Error:[/] Index database error.\n"
        f"  {message}\n"
        "  If the index is corrupt, run:  sprig clear --yes  then  sprig index"
    )


def err_reindex_running() -> str:
    return (
        "[yellow]A full reindex is already running.[/]\n"
        "  Wait for it to finish, then check:  sprig status"
    )
