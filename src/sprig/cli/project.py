"""Shared helpers for CLI commands: project loading and error reporting."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, NoReturn

import typer
from rich.console import Console

from sprig.cli.errors import (
    err_config,
    err_file_not_found,
    err_no_api_key,
    err_not_a_project,
    err_provider,
    err_reindex_running,
    err_search_disabled,
    err_storage,
)
from sprig.config import ConfigError
from sprig.errors import (
    EmbeddingProviderError,
    ReindexInProgressError,
    SemanticSearchDisabledError,
    SourceNotFoundError,
    SprigError,
    StorageError,
)
from sprig.service import ProjectIndex

console = Console()

ProjectOption = Annotated[
    Path,
    typer.Option("--project", "-p", help="Project directory (default: current directory)."),
]


def open_project(project: Path) -> ProjectIndex:
    """Return a ProjectIndex for *project*, exiting with a message on bad input."""
    if not project.is_dir():
        console.print(err_not_a_project(str(project)))
        raise typer.Exit(1)
    try:
        return ProjectIndex(project)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc


def fail(exc: SprigError, project: ProjectIndex | None = None) -> NoReturn:
    """Print the actionable message for *exc* and exit with code 1."""
    if isinstance(exc, SemanticSearchDisabledError):
        if project is not None and not project.config.semantic_search.enabled:
            console.print(err_search_disabled())
        else:
            console.print(err_no_api_key())
    elif isinstance(exc, SourceNotFoundError):
        console.print(err_file_not_found(exc.rel_path))
    elif isinstance(exc, EmbeddingProviderError):
        console.print(err_provider(str(exc)))
    elif isinstance(exc, StorageError):
        console.print(err_storage(str(exc)))
    elif isinstance(exc, ReindexInProgressError):
        console.print(err_reindex_running())
    else:
        console.print(f"[red]Error:[/] {exc}")
    raise typer.Exit(1) from exc
