"""remake CLI: a Typer-based command-line interface.

Provides the ``remake`` command with subcommands for running goals,
sending the ready signal and inspecting goal status.

All output uses Rich for formatted terminal display.
"""
