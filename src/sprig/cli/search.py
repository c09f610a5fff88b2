"""sprig search — semantic search over the project index."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from sprig.cli.project import ProjectOption, console, fail, open_project
from sprig.errors import SprigError
from sprig.rag.search import fit_token_budget


def search_cmd(
    query: Annotated[str, typer.Argument(help="Free-text query.")],
    project: ProjectOption = Path("."),
    entity_type: Annotated[
        list[str] | None,
        typer.Option("--type", "-t", help="Only this entity type (repeatable)."),
    ] = None,
    book: Annotated[
        str | None,
        typer.Option("--book", "-b", help="Only chunks from this book id."),
    ] = None,
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", min=1, help="Maximum results (default from config)."),
    ] = None,
    budget: Annotated[
        int | None,
        typer.Option("--budget", min=1, help="Token budget for results (default from config)."),
    ] = None,
    include_excluded: Annotated[
        bool,
        typer.Option(
            "--include-excluded",
            help="Also search files excluded in .context_settings.json.",
        ),
    ] = False,
) -> None:
    """Show the project chunks most similar to QUERY."""
    index = open_project(project)
    try:
        results = index.search(
            query,
            max_results=limit,
            entity_types=entity_type or None,
            book_id=book,
            respect_context_settings=not include_excluded,
        )
    except SprigError as exc:
        fail(exc, index)

    token_budget = budget or index.config.semantic_search.max_search_tokens_default
    selected, total_tokens = fit_token_budget(results, token_budget)

    if not selected:
        console.print("[dim]No matching chunks.[/]")
        return

    table = Table(show_lines=False)
    table.add_column("Score", justify="right", style="bold")
    table.add_column("File")
    table.add_column("Section", style="dim")
    table.add_column("Type", style="dim")
    table.add_column("Preview")

    for r in selected:
        table.add_row(
            f"{r.similarity_score:.3f}",
            r.file_path,
            r.section_heading or "",
            r.entity_type or "",
            r.content_preview.replace("\n", " "),
        )

    console.print(table)
    dropped = len(results) - len(selected)
    footer = f"[dim]{len(selected)} results, {total_tokens:,} tokens"
    if dropped:
        footer += f" ({dropped} over the {token_budget:,}-token budget)"
    console.print(footer + "[/]")
