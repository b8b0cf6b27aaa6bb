"""Runs make in question mode and turns its database dump into a Database."""

from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from remake.errors import QueryError
from remake.makedb.database import Database

logger = logging.getLogger(__name__)

QUERY_FLAGS: tuple[str, ...] = ("--question", "--print-data-base")


@runtime_checkable
class DatabaseSource(Protocol):
    """Anything that can produce a fresh Database for a goal."""

    def query(self, goal: str) -> Database:
        """Return a newly populated Database describing ``goal``."""
        ...


class MakeQuery:
    """Queries make for its dependency database.

    Parameters
    ----------
    make_command:
        The make executable.
    make_flags:
        Flags passed to every make invocation, before the query flags.
    """

    def __init__(
        self,
        make_command: str = "make",
        make_flags: Sequence[str] = ("--warn-undefined-variables",),
    ) -> None:
        self.make_command = make_command
        self.make_flags = list(make_flags)

    def argv(self, goal: str) -> list[str]:
        argv = [self.make_command, *self.make_flags, *QUERY_FLAGS]
        if goal:
            argv.append(goal)
        return argv

    def query(self, goal: str) -> Database:
        """Run the query and parse its output.

        make exits non-zero in question mode whenever something is out of
        date, so the exit status is ignored.

        Raises
        ------
        QueryError
            If make cannot be run, or its output cannot be parsed.
        """
        argv = self.argv(goal)
        command = shlex.join(argv)
        try:
            result = subprocess.run(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as exc:
            raise QueryError(f"Error running {command}: {exc}") from exc

        if result.stderr:
            logger.debug("%s: %s", command, result.stderr.strip())

        db = Database()
        try:
            db.populate(result.stdout)
        except QueryError as exc:
            exc.add_note(f"while parsing the output of {command}")
            raise
        return db

    def __str__(self) -> str:
        return shlex.join([self.make_command, *self.make_flags, *QUERY_FLAGS])
