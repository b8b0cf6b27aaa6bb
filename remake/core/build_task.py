"""One make process for one goal, plus the staleness checks that drive it.

Progress sampling and change detection are deliberately separate. During
grace mode ``sample_progress()`` measures how many targets are still
pending while the build catches up. Once the goal is current the task
switches to ``has_changed()``, which compares against the time of the last
sample. The two must not be interleaved: after the first change check the
reference time is frozen.
"""

from __future__ import annotations

import logging
import shlex
import time
import uuid
from collections.abc import Callable
from datetime import datetime

from remake.core.make_query import DatabaseSource
from remake.core.process import ExitCallback, ProcessHandle, ProcessSpawner
from remake.errors import BuildStartError, InvalidTransitionError, LatchMisuseError
from remake.makedb.database import Database
from remake.models.tasks import VALID_TRANSITIONS, TaskState

logger = logging.getLogger(__name__)


def _local_now() -> datetime:
    return datetime.now().astimezone()


class BuildTask:
    """Manages a make command for one goal and checks if it is up to date.

    Parameters
    ----------
    goal:
        Make goal; an empty string means make's default goal.
    spawner:
        Starts the build process.
    source:
        Produces a fresh make Database for every check.
    make_command, make_flags:
        The build command line is ``make_command *make_flags [goal]``.
    kill_retry_delay:
        Seconds to wait between failed kill attempts.
    clock, sleep:
        Injected for tests.
    """

    def __init__(
        self,
        goal: str,
        spawner: ProcessSpawner,
        source: DatabaseSource,
        *,
        make_command: str = "make",
        make_flags: list[str] | None = None,
        kill_retry_delay: float = 1.0,
        clock: Callable[[], datetime] = _local_now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.goal = goal
        self.task_id = uuid.uuid4().hex[:12]
        self._spawner = spawner
        self._source = source
        self._make_command = make_command
        self._make_args = list(
            make_flags if make_flags is not None else ["--warn-undefined-variables"]
        )
        if goal:
            self._make_args.append(goal)
        self._kill_retry_delay = kill_retry_delay
        self._clock = clock
        self._sleep = sleep

        self._process: ProcessHandle | None = None
        self._db: Database | None = None
        self.state = TaskState.CREATED
        self.progressed_at: datetime | None = None
        self.remaining = 0
        self.used_change_detection = False

    # ------------------------------------------------------------------
    # State management
    # ------------------------------------------------------------------

    def _transition(self, target: TaskState) -> None:
        allowed = VALID_TRANSITIONS.get(self.state, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition {self} from {self.state.value} to {target.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )
        self.state = target

    def mark_finished(self) -> None:
        """Record that the goal was brought up to date."""
        if self.state != TaskState.FINISHED:
            self._transition(TaskState.FINISHED)

    def mark_superseded(self) -> None:
        """Record that this task was killed to make way for a new one."""
        if self.state != TaskState.SUPERSEDED:
            self._transition(TaskState.SUPERSEDED)

    # ------------------------------------------------------------------
    # Process lifecycle
    # ------------------------------------------------------------------

    @property
    def argv(self) -> list[str]:
        return [self._make_command, *self._make_args]

    def start(self, on_exit: ExitCallback) -> None:
        """Spawn the build command.

        Raises
        ------
        BuildStartError
            If the process could not be started.
        """
        if self.state != TaskState.CREATED:
            raise InvalidTransitionError(f"{self} was already started")
        try:
            self._process = self._spawner.start(
                self._make_command, self._make_args, on_exit
            )
        except OSError as exc:
            raise BuildStartError(f"Error starting {self}: {exc}") from exc
        self._transition(TaskState.STARTED)
        logger.info("Started %s", self)

    def is_running(self) -> bool:
        return self._process is not None and self._process.is_running()

    @property
    def returncode(self) -> int | None:
        """Exit status of the build process, ``None`` while it runs."""
        return self._process.returncode if self._process else None

    def kill(self) -> None:
        """Kill the process and wait for it to exit, retrying on error."""
        if self._process is None:
            return
        while True:
            try:
                self._process.kill()
            except OSError as exc:
                logger.error("Error killing %s: %s", self, exc)
                self._sleep(self._kill_retry_delay)
            else:
                return

    # ------------------------------------------------------------------
    # Staleness checks
    # ------------------------------------------------------------------

    def _query(self) -> Database:
        self._db = self._source.query(self.goal)
        return self._db

    def sample_progress(self) -> int:
        """Record the time and the number of targets still pending.

        Returns the pending count. Must not be used after ``has_changed()``.
        """
        if self.used_change_detection:
            raise LatchMisuseError("Cannot sample progress after checking for changes")
        previous = self.remaining
        first = self.progressed_at is None
        self.progressed_at = self._clock()
        self.remaining = self._query().count_pending(self.goal, self.progressed_at)

        if self.state in (TaskState.STARTED, TaskState.PROGRESSING, TaskState.STALLED):
            if first or self.remaining != previous:
                self._transition(TaskState.PROGRESSING)
            else:
                self._transition(TaskState.STALLED)
        return self.remaining

    def has_changed(self) -> bool:
        """Whether the goal became stale since progress was last sampled."""
        if self.progressed_at is None:
            raise LatchMisuseError("Cannot check for changes before sampling progress")
        self.used_change_detection = True
        return self._query().is_stale(self.goal, self.progressed_at)

    def watched_files(self) -> list[str]:
        """Real files the goal depends on, from the most recent query."""
        db = self._db or self._query()
        return db.watched_files(self.goal)

    def __str__(self) -> str:
        return shlex.join(self.argv)
