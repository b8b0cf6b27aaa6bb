"""Rich terminal renderer for a goal's dependency status.

Turns a make ``Database`` into a table of the goal and every target it
depends on, color-coded by status.

Color scheme
------------
- green     : ok
- yellow    : needs update
- bold red  : missing
- magenta   : phony
"""

from __future__ import annotations

from datetime import datetime

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from remake.makedb.database import Database
from remake.models.targets import TargetRecord

_STATUS_ICONS: dict[str, str] = {
    "ok": "[green]OK[/green]",
    "needs update": "[yellow]NEEDS UPDATE[/yellow]",
    "missing": "[bold red]MISSING[/bold red]",
    "phony": "[magenta]PHONY[/magenta]",
}


class StatusRenderer:
    """Renders the status of a goal and its dependencies.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def render_status(self, db: Database, goal: str, since: datetime) -> Panel:
        """Render the goal's dependency table and its staleness verdict."""
        target = db.get_target(goal)
        closure = db.get_dependency_closure(target.name)

        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("#", style="dim", width=5, justify="right")
        table.add_column("Target", min_width=25)
        table.add_column("Kind", min_width=10)
        table.add_column("Status", min_width=14, justify="center")
        table.add_column("Last modified", min_width=19)

        rows: list[tuple[TargetRecord, str]] = [(target, "goal")]
        rows += [(db.get_target(name), "normal") for name in closure.normal]
        rows += [(db.get_target(name), "order-only") for name in closure.order_only]

        for i, (record, kind) in enumerate(rows):
            modified = (
                record.last_modified.strftime("%Y-%m-%d %H:%M:%S")
                if record.last_modified
                else "[dim]-[/dim]"
            )
            table.add_row(str(i), escape(record.name), kind, _STATUS_ICONS[record.status], modified)

        pending = db.count_pending(target.name, since)
        if db.is_stale(target.name, since):
            verdict = f"[bold red]STALE[/bold red] ({pending} pending)"
        else:
            verdict = "[green]up to date[/green]"

        summary = "  |  ".join([
            f"[bold]Goal:[/bold] {escape(target.name)}",
            f"[bold]Dependencies:[/bold] {len(rows) - 1}",
            f"[bold]State:[/bold] {verdict}",
        ])

        return Panel(
            Group(table, Text(""), Text.from_markup(summary)),
            title="[bold]remake status[/bold]",
            border_style="blue",
            padding=(1, 2),
        )

    def print_status(self, db: Database, goal: str, since: datetime) -> None:
        self.console.print(self.render_status(db, goal, since))
