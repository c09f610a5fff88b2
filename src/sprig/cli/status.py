"""sprig status — index statistics and feature availability."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.panel import Panel
from rich.table import Table

from sprig.cli.project import ProjectOption, console, fail, open_project
from sprig.db.connection import index_db_path
from sprig.errors import SprigError
from sprig.ingest.embeddings import API_KEY_ENV, api_key_from_env


def status_cmd(
    project: ProjectOption = Path("."),
    files: Annotated[
        bool,
        typer.Option("--files", "-f", help="Also list every indexed file."),
    ] = False,
) -> None:
    """Show index size, last update, embedding spend and configuration."""
    index = open_project(project)
    try:
        status = index.status()
        indexed = index.indexed_files() if files else []
    except SprigError as exc:
        fail(exc, index)

    cfg = index.config.semantic_search
    db_path = index_db_path(index.project_root)
    db_info = str(db_path)
    if db_path.exists():
        size_mb = db_path.stat().st_size / (1024 * 1024)
        db_info = f"{db_path} ({size_mb:.1f} MB)"

    if not cfg.enabled:
        availability = "[yellow]✗ disabled[/]"
    elif api_key_from_env() is None:
        availability = f"[yellow]✗ {API_KEY_ENV} not set[/]"
    else:
        availability = "[green]✓ ready[/]"

    lines = [
        f"Search:   {availability}  [dim]({cfg.embedding_model})[/]",
        f"Index:    {db_info}",
        f"Files: [bold]{status.total_files}[/]  |  Chunks: [bold]{status.total_chunks:,}[/]",
        f"Embedding spend: [bold]${status.total_cost_usd:.4f}[/]",
    ]
    if status.last_indexed:
        lines.append(f"Last indexed: [dim]{status.last_indexed[:16]}[/]")
    else:
        lines.append("[dim]Nothing indexed yet.[/]  Run:  sprig index")

    console.print(Panel("\n".join(lines), title="[bold]Semantic Index[/]", expand=False))

    if not indexed:
        return

    table = Table(show_lines=False)
    table.add_column("File")
    table.add_column("Type", style="dim")
    table.add_column("Chunks", justify="right")
    table.add_column("Model", style="dim")
    table.add_column("Indexed", style="dim")
    for f in indexed:
        table.add_row(
            f.file_path,
            f.file_type,
            str(f.chunk_count),
            f.embedding_model or "unknown",
            f.last_indexed[:16],
        )
    console.print(table)
