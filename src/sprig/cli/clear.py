"""sprig clear — wipe the project index, including the embedding cost ledger."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from sprig.cli.project import ProjectOption, console, fail, open_project
from sprig.errors import SprigError


def clear_cmd(
    project: ProjectOption = Path("."),
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Delete every indexed file, chunk and ledger entry."""
    index = open_project(project)
    try:
        status = index.status()
    except SprigError as exc:
        fail(exc, index)

    console.print(
        f"\nClear index: [bold]{status.total_files}[/] files, "
        f"[bold]{status.total_chunks:,}[/] chunks, "
        f"${status.total_cost_usd:.4f} logged spend"
    )
    if not yes:
        if not typer.confirm("Confirm clear?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)

    try:
        index.clear()
    except SprigError as exc:
        fail(exc, index)
    console.print("[green]✓[/] Index cleared")
