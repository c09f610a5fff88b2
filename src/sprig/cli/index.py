"""sprig index / sprig index-file — build or refresh the semantic index."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from sprig.cli.project import ProjectOption, console, fail, open_project
from sprig.errors import SprigError
from sprig.ingest.reindex import IndexProgress


def index_cmd(project: ProjectOption = Path(".")) -> None:
    """Index every markdown document in the project."""
    index = open_project(project)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Indexing…", total=None)

        def _on_progress(p: IndexProgress) -> None:
            progress.update(
                task,
                total=p.files_total,
                completed=p.files_processed,
                description=f"Indexing {p.current_file}",
            )

        try:
            summary = index.reindex(on_progress=_on_progress)
        except SprigError as exc:
            progress.stop()
            fail(exc, index)

    console.print(
        f"[green]✓[/] {summary.total_files} files  |  "
        f"{summary.total_chunks} chunks  |  "
        f"{summary.total_embedded} embedded  |  "
        f"{summary.total_tokens:,} tokens"
    )
    if summary.failed:
        console.print(f"[yellow]✗ {len(summary.failed)} files failed:[/]")
        for rel_path in summary.failed:
            console.print(f"    {rel_path}")
        raise typer.Exit(1)


def index_file_cmd(
    path: Annotated[str, typer.Argument(help="Document path relative to the project.")],
    project: ProjectOption = Path("."),
) -> None:
    """Index (or refresh) a single document."""
    index = open_project(project)
    rel_path = path.replace("\\", "/")
    try:
        result = index.index_file(rel_path)
    except SprigError as exc:
        fail(exc, index)

    if result.unchanged:
        console.print(f"[dim]↷ Unchanged: {rel_path}[/]")
        return
    if result.chunks_total == 0:
        console.print(f"[dim]↷ No indexable content, index left as is: {rel_path}[/]")
        return
    console.print(
        f"[green]✓[/] {rel_path}: {result.chunks_total} chunks, "
        f"{result.chunks_embedded} embedded ({result.tokens_used:,} tokens)"
    )
