"""``remake run [GOALS]...``: keep goals built, restarting on change.

Runs until interrupted. Each goal gets its own build/monitor loop; with no
goals, make's default goal is used.
"""

from __future__ import annotations

import logging

import typer
from pydantic import ValidationError
from rich.console import Console

from remake.config import RemakeSettings
from remake.core.orchestrator import Remake, goal_label
from remake.log import configure_logging

console = Console(stderr=True)
logger = logging.getLogger(__name__)


def run_cmd(
    goals: list[str] = typer.Argument(
        None,
        help="Make goals to keep built (default: make's default goal).",
    ),
    grace: float = typer.Option(
        None,
        "--grace",
        "-g",
        help="Seconds a build may go without progress before it is restarted.",
    ),
    poll: float = typer.Option(
        None,
        "--poll",
        "-p",
        help="Poll for changes every N seconds (0 disables polling).",
    ),
    watch: float = typer.Option(
        None,
        "--watch",
        "-w",
        help="Filesystem watch debounce in seconds (0 disables watching).",
    ),
    log_level: str = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
    ),
) -> None:
    """Build goals and rebuild them whenever their dependencies change."""
    overrides = {
        key: value
        for key, value in {
            "grace_period": grace,
            "poll_interval": poll,
            "watch_debounce": watch,
            "log_level": log_level,
        }.items()
        if value is not None
    }
    try:
        settings = RemakeSettings(**overrides)
    except ValidationError as exc:
        for error in exc.errors():
            console.print(f"[bold red]Invalid settings:[/bold red] {error['msg']}")
        raise typer.Exit(code=1)

    configure_logging(settings.log_level)
    goals = goals or [""]
    logger.info("Remaking %s", ", ".join(goal_label(goal) for goal in goals))

    remake = Remake(goals, settings)
    try:
        remake.run()
    except KeyboardInterrupt:
        console.print("[dim]Interrupted.[/dim]")
    except RuntimeError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=1)
