"""sprig watch — keep the index in sync with the project until interrupted."""

from __future__ import annotations

import threading
from pathlib import Path

import typer

from sprig.cli.project import ProjectOption, console, fail, open_project
from sprig.errors import SprigError


def watch_cmd(project: ProjectOption = Path(".")) -> None:
    """Watch the project and re-index documents once they stop changing."""
    index = open_project(project)
    try:
        index.require_client()
    except SprigError as exc:
        fail(exc, index)

    if not index.config.semantic_search.auto_index:
        console.print(
            "[yellow]Auto-index is disabled.[/]\n"
            "  Set  semantic_search.auto_index: true  in sprig.yaml to watch this project."
        )
        raise typer.Exit(1)

    sched = index.config.scheduler
    index.start_watching()
    console.print(
        f"[green]✓[/] Watching [bold]{index.project_root}[/] "
        f"[dim](quiet period {sched.quiet_period:g}s, tick {sched.tick_interval:g}s)[/]\n"
        "  Press Ctrl-C to stop."
    )
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        console.print("\n[dim]Stopping…[/]")
    finally:
        index.stop_watching()
