"""Sprig CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from sprig.cli.clear import clear_cmd
from sprig.cli.index import index_cmd, index_file_cmd
from sprig.cli.project import console
from sprig.cli.search import search_cmd
from sprig.cli.status import status_cmd
from sprig.cli.watch import watch_cmd


def _package_version() -> str:
    try:
        return importlib.metadata.version("sprig")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"sprig {_package_version()}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
        force=True,
    )
    # LiteLLM and HTTP clients are noisy at DEBUG.
    for name in ("LiteLLM", "httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


app = typer.Typer(
    name="sprig",
    help=(
        "Sprig: local semantic index for markdown project documents.\n\n"
        "  sprig index   Embed every document in the project.\n"
        "  sprig search  Find the chunks most similar to a query.\n"
        "  sprig watch   Keep the index in sync while you write."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """Sprig: local semantic index for markdown project documents."""
    _configure_logging(verbose)


app.command("index")(index_cmd)
app.command("index-file")(index_file_cmd)
app.command("search")(search_cmd)
app.command("status")(status_cmd)
app.command("clear")(clear_cmd)
app.command("watch")(watch_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed Sprig version."""
    typer.echo(f"sprig {_package_version()}")


if __name__ == "__main__":
    app()
