"""Main Typer application: imports and registers all CLI commands.

Entry point: ``remake`` (configured via pyproject.toml console_scripts).
"""

from __future__ import annotations

import typer

from remake.cli.commands.ready_cmd import ready_cmd
from remake.cli.commands.run_cmd import run_cmd
from remake.cli.commands.status_cmd import status_cmd

app = typer.Typer(
    name="remake",
    help="remake: keep make goals built, restarting them when they go stale.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="run", help="Build goals and rebuild them on change.")(run_cmd)
app.command(name="ready", help="Signal the parent remake that the build is ready.")(ready_cmd)
app.command(name="status", help="Show whether a goal is up to date.")(status_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
