"""Shared test fixtures for remake."""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta

import pytest

from remake.makedb.database import Database

# A fixed, timezone-aware reference point for staleness checks.
BASE_TIME = datetime(2024, 3, 1, 12, 0, 0).astimezone()


# ---------------------------------------------------------------------------
# make database dumps
# ---------------------------------------------------------------------------


def render_block(
    name: str,
    *,
    normal: Sequence[str] = (),
    order_only: Sequence[str] = (),
    phony: bool = False,
    missing: bool = False,
    needs_update: bool = False,
    modified: datetime | None = None,
    not_a_target: bool = False,
) -> str:
    """Render one file block the way ``make --print-data-base`` prints it."""
    lines: list[str] = []
    if not_a_target:
        lines.append("# Not a target:")
    head = f"{name}:"
    if normal:
        head += " " + " ".join(normal)
    if order_only:
        head += " | " + " ".join(order_only)
    lines.append(head)
    if phony:
        lines.append("#  Phony target (prerequisite of .PHONY).")
    lines.append("#  Implicit rule search has not been done.")
    if missing:
        lines.append("#  File does not exist.")
    elif modified is not None:
        lines.append(f"#  Last modified {modified.strftime('%Y-%m-%d %H:%M:%S')}.000000000")
    if needs_update:
        lines.append("#  Needs to be updated (-q is set).")
    lines.append("#  recipe to execute (from 'Makefile', line 1):")
    lines.append(f"\ttouch {name}")
    return "\n".join(lines)


def render_dump(blocks: Sequence[str], default_goal: str = "") -> str:
    """Wrap file blocks in the surrounding sections of a make dump."""
    parts = [
        "# GNU Make 4.3",
        "# Built for x86_64-pc-linux-gnu",
        "",
        "# Variables",
        "",
        "# makefile",
    ]
    if default_goal:
        parts.append(f".DEFAULT_GOAL := {default_goal}")
    parts += ["", "# Files", ""]
    for block in blocks:
        parts += [block, ""]
    parts += [
        "# files hash-table stats:",
        "# Load=4/1024=0%, Rehash=0, Collisions=0/12=0%",
        "",
        "# VPATH Search Paths",
        "",
        "# finished making data base",
    ]
    return "\n".join(parts) + "\n"


def make_db(blocks: Sequence[str], default_goal: str = "") -> Database:
    return Database.from_dump(render_dump(blocks, default_goal))


@pytest.fixture
def up_to_date_db() -> Database:
    """A goal whose only dependency exists and is current."""
    return make_db(
        [
            render_block("app", normal=["main.c"], modified=BASE_TIME),
            render_block("main.c", modified=BASE_TIME - timedelta(hours=1)),
        ],
        default_goal="app",
    )


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------


class FakeProcess:
    """In-memory build process; tests decide when it exits."""

    def __init__(self, on_exit: Callable[[int], None], kill_failures: int = 0) -> None:
        self._on_exit = on_exit
        self._returncode: int | None = None
        self.kill_failures = kill_failures
        self.kill_calls = 0

    @property
    def returncode(self) -> int | None:
        return self._returncode

    def is_running(self) -> bool:
        return self._returncode is None

    def exit(self, returncode: int = 0) -> None:
        if self._returncode is None:
            self._returncode = returncode
            self._on_exit(returncode)

    def kill(self) -> None:
        self.kill_calls += 1
        if self.kill_failures > 0:
            self.kill_failures -= 1
            raise OSError("Operation not permitted")
        self.exit(-15)


class FakeSpawner:
    """Records every start; optionally fails to spawn or exits at once."""

    def __init__(
        self,
        fail: bool = False,
        kill_failures: int = 0,
        exit_code: int | None = None,
    ) -> None:
        self.fail = fail
        self.kill_failures = kill_failures
        self.exit_code = exit_code
        self.calls: list[tuple[str, list[str]]] = []
        self.processes: list[FakeProcess] = []
        self.lock = threading.Lock()

    def start(self, name: str, args: Sequence[str], on_exit: Callable[[int], None]) -> FakeProcess:
        if self.fail:
            raise FileNotFoundError(f"No such file or directory: '{name}'")
        process = FakeProcess(on_exit, kill_failures=self.kill_failures)
        with self.lock:
            self.calls.append((name, list(args)))
            self.processes.append(process)
        if self.exit_code is not None:
            process.exit(self.exit_code)
        return process


class FakeSource:
    """Database source fed by a callable or a fixed sequence of databases."""

    def __init__(self, databases: Callable[[], Database] | Sequence[Database]) -> None:
        if callable(databases):
            self._factory = databases
        else:
            remaining = list(databases)

            def _next() -> Database:
                return remaining.pop(0) if len(remaining) > 1 else remaining[0]

            self._factory = _next
        self.calls = 0

    def query(self, goal: str) -> Database:
        self.calls += 1
        return self._factory()


@pytest.fixture
def spawner() -> FakeSpawner:
    return FakeSpawner()
