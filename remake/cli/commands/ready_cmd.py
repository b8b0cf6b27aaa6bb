"""``remake ready``: tell the remake running this build that it is ready."""

from __future__ import annotations

import typer
from rich.console import Console

from remake.core.ready import send_ready_signal
from remake.errors import ReadySignalError

console = Console(stderr=True)


def ready_cmd() -> None:
    """Send the ready signal to the ancestor remake process and exit.

    Run this from a long-running build (a server, a watcher) once its
    initial work is done, so remake stops waiting and starts monitoring.
    Outside remake it does nothing.
    """
    try:
        send_ready_signal()
    except ReadySignalError as exc:
        console.print(f"[bold red]Ready signal failed:[/bold red] {exc}")
        raise typer.Exit(code=1)
