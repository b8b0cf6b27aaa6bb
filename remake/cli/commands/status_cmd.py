"""``remake status [GOAL]``: show whether a goal and its dependencies are current.

Runs a single make query, prints every dependency with its status and
exits with code 1 when the goal is stale.
"""

from __future__ import annotations

from datetime import datetime

import typer
from rich.console import Console

from remake.config import RemakeSettings
from remake.core.make_query import MakeQuery
from remake.errors import QueryError, TargetNotFoundError
from remake.monitor.renderer import StatusRenderer

console = Console()


def status_cmd(
    goal: str = typer.Argument(
        "",
        help="Make goal to inspect (default: make's default goal).",
        show_default=False,
    ),
) -> None:
    """Show the status of a goal and everything it depends on."""
    settings = RemakeSettings()
    query = MakeQuery(settings.make_command, settings.make_flags)
    try:
        db = query.query(goal)
    except QueryError as exc:
        console.print(f"[bold red]Query failed:[/bold red] {exc}")
        raise typer.Exit(code=1)

    now = datetime.now().astimezone()
    try:
        StatusRenderer(console=console).print_status(db, goal, now)
    except TargetNotFoundError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=1)

    if db.is_stale(goal, now):
        raise typer.Exit(code=1)
