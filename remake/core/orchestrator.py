"""Goal orchestration: grace mode, monitor mode and the restart loop.

Every goal runs ``GoalOrchestrator.run_forever`` on its own thread:

1. Create a ``BuildTask`` and start make while holding the build lock.
2. **Grace mode**: let the build catch up. Leave when make says the goal
   is current, the build exits, or the build sends the ready signal. Kill
   the build if the pending count stops moving for a whole grace period.
3. **Monitor mode**: without the lock, check for staleness on every poll
   tick or filesystem change, and kill the build once the goal is stale.
4. Start over with a new task.

The build lock keeps two goals with shared prerequisites from building the
same prerequisite at the same time.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable, Sequence

from remake.config import RemakeSettings
from remake.core.build_task import BuildTask
from remake.core.events import EventSelector
from remake.core.make_query import DatabaseSource, MakeQuery
from remake.core.process import ProcessSpawner, SubprocessSpawner
from remake.core.ready import ReadySignalListener
from remake.errors import GracePeriodExceededError, RemakeError
from remake.models.events import CHECK_EVENTS, EventKind, GoalEvent
from remake.watch.watcher import SharedWatcher, WatchClient

logger = logging.getLogger(__name__)


def goal_label(goal: str) -> str:
    return goal or "<default goal>"


class GoalOrchestrator:
    """Keeps one goal built, forever.

    Parameters
    ----------
    goal:
        Make goal; empty for make's default goal.
    build_lock:
        Shared by all goals; held while a build is in grace mode.
    settings:
        Timing and make invocation settings.
    spawner, source:
        Process and database collaborators handed to each ``BuildTask``.
    inbox:
        Receives READY, CHANGED and EXITED events for this goal.
    watch_client:
        Optional filesystem watcher client; watched directories follow the
        goal's dependencies.
    sleep:
        Injected for tests.
    """

    def __init__(
        self,
        goal: str,
        build_lock: threading.Lock,
        settings: RemakeSettings,
        *,
        spawner: ProcessSpawner | None = None,
        source: DatabaseSource | None = None,
        inbox: queue.Queue[GoalEvent] | None = None,
        watch_client: WatchClient | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.goal = goal
        self.settings = settings
        self.inbox: queue.Queue[GoalEvent] = inbox if inbox is not None else queue.Queue()
        self._build_lock = build_lock
        self._spawner = spawner or SubprocessSpawner()
        self._source = source or MakeQuery(settings.make_command, settings.make_flags)
        self._watch_client = watch_client
        self._sleep = sleep
        self.task: BuildTask | None = None
        self.cycles = 0

    # ------------------------------------------------------------------
    # Event sources
    # ------------------------------------------------------------------

    def notify_ready(self) -> None:
        self.inbox.put(GoalEvent(kind=EventKind.READY))

    def notify_changed(self) -> None:
        self.inbox.put(GoalEvent(kind=EventKind.CHANGED))

    def attach_watcher(self, watcher: SharedWatcher) -> None:
        self._watch_client = watcher.new_client(self.notify_changed)

    def _exit_callback(self, task: BuildTask) -> Callable[[int], None]:
        def on_exit(returncode: int) -> None:
            self.inbox.put(
                GoalEvent(kind=EventKind.EXITED, origin=task.task_id, returncode=returncode)
            )

        return on_exit

    def _selector(self, task: BuildTask) -> EventSelector:
        selector = EventSelector(self.inbox, task.task_id)
        selector.every(EventKind.POLL, self.settings.poll_interval)
        return selector

    # ------------------------------------------------------------------
    # Task lifecycle
    # ------------------------------------------------------------------

    def new_task(self) -> BuildTask:
        return BuildTask(
            self.goal,
            self._spawner,
            self._source,
            make_command=self.settings.make_command,
            make_flags=self.settings.make_flags,
            kill_retry_delay=self.settings.kill_retry_delay,
            sleep=self._sleep,
        )

    def update_watched_files(self, task: BuildTask) -> None:
        """Keep watching the directories of the goal's dependencies.

        Called after every check because wildcard rules can pick up new
        files at any time.
        """
        if self._watch_client is not None:
            self._watch_client.watch_files(task.watched_files())

    def _log_exit(self, task: BuildTask, event: GoalEvent) -> None:
        if event.returncode:
            logger.warning("%s: exit status %d", task, event.returncode)

    # ------------------------------------------------------------------
    # Grace mode
    # ------------------------------------------------------------------

    def grace_mode(self, task: BuildTask) -> None:
        """Start the build and wait for it to bring the goal up to date.

        Raises
        ------
        BuildStartError
            If the build could not be started.
        GracePeriodExceededError
            If the build stopped making progress and was killed.
        """
        with self._build_lock:
            task.start(self._exit_callback(task))
            try:
                self._wait_for_build(task)
            except BaseException:
                task.kill()
                raise
        logger.info("%s: up to date, monitoring for changes", goal_label(self.goal))

    def _wait_for_build(self, task: BuildTask) -> None:
        grace = self.settings.grace_period
        selector = self._selector(task)
        # A long-running phony goal whose dependencies are already current
        # never signals readiness and sees no file events, so force a check.
        selector.after(EventKind.FORCED_CHECK, self.settings.forced_check_delay)
        selector.after(EventKind.STALLED, grace)
        remaining: int | None = None

        while True:
            event = selector.wait()

            if event.kind == EventKind.READY:
                # Monitor mode compares timestamps against this sample.
                task.sample_progress()
                task.mark_finished()
                return

            if event.kind == EventKind.EXITED:
                task.sample_progress()
                self._log_exit(task, event)
                task.mark_finished()
                return

            if event.kind in CHECK_EVENTS:
                logger.debug("%s: %s in grace mode", goal_label(self.goal), event.kind.value)
                count = task.sample_progress()
                if count == 0:
                    task.mark_finished()
                    return
                if count != remaining:
                    selector.after(EventKind.STALLED, grace)
                remaining = count
                self.update_watched_files(task)

            elif event.kind == EventKind.STALLED:
                # No progress for a whole grace period; one last chance.
                count = task.sample_progress()
                if count == 0:
                    task.mark_finished()
                    return
                if count != remaining:
                    remaining = count
                    selector.after(EventKind.STALLED, grace)
                    continue
                if not task.is_running():
                    # Exited while the last sample was taken.
                    if task.returncode:
                        logger.warning("%s: exit status %d", task, task.returncode)
                    task.mark_finished()
                    return
                task.kill()
                task.mark_superseded()
                raise GracePeriodExceededError(f"Grace period exceeded: {task}")

    # ------------------------------------------------------------------
    # Monitor mode
    # ------------------------------------------------------------------

    def monitor_mode(self, task: BuildTask) -> None:
        """Return once the goal is stale and the build has been killed."""
        selector = self._selector(task)
        self.update_watched_files(task)
        try:
            while True:
                event = selector.wait()

                if event.kind == EventKind.EXITED:
                    # Exiting does not make the goal stale.
                    self._log_exit(task, event)

                elif event.kind in CHECK_EVENTS:
                    if task.has_changed():
                        logger.info("%s: changed, restarting %s", goal_label(self.goal), task)
                        task.kill()
                        task.mark_superseded()
                        return
                    self.update_watched_files(task)
        except BaseException:
            task.kill()
            raise

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def run_cycle(self) -> None:
        """Build the goal once, then monitor it until it goes stale."""
        self.cycles += 1
        task = self.task = self.new_task()
        self.update_watched_files(task)
        self.grace_mode(task)
        self.monitor_mode(task)

    def run_forever(self) -> None:
        """Run cycles forever; recoverable errors pause and retry."""
        while True:
            try:
                self.run_cycle()
            except RemakeError as exc:
                if not exc.recoverable:
                    raise
                logger.error("%s: %s", goal_label(self.goal), exc)
                self._sleep(self.settings.error_sleep)

    def shutdown(self) -> None:
        """Kill the current build, if any."""
        if self.task is not None:
            self.task.kill()


class Remake:
    """Runs one ``GoalOrchestrator`` per goal and wires up event sources.

    Parameters
    ----------
    goals:
        Goals to keep built. An empty sequence means make's default goal.
    settings:
        Shared settings.
    """

    def __init__(
        self,
        goals: Sequence[str],
        settings: RemakeSettings,
        *,
        spawner: ProcessSpawner | None = None,
        source: DatabaseSource | None = None,
        watcher: SharedWatcher | None = None,
        ready_listener: ReadySignalListener | None = None,
    ) -> None:
        self.goals = list(goals) or [""]
        self.settings = settings
        self.build_lock = threading.Lock()
        self.watcher = watcher
        if self.watcher is None and settings.watching_enabled:
            self.watcher = SharedWatcher(settings.watch_debounce)

        self.orchestrators: list[GoalOrchestrator] = []
        for goal in self.goals:
            orchestrator = GoalOrchestrator(
                goal,
                self.build_lock,
                settings,
                spawner=spawner,
                source=source,
            )
            if self.watcher is not None:
                orchestrator.attach_watcher(self.watcher)
            self.orchestrators.append(orchestrator)

        # With several goals it is unknown which build sent the signal.
        self.ready_listener: ReadySignalListener | None = None
        if len(self.orchestrators) == 1:
            self.ready_listener = ready_listener or ReadySignalListener()
            self.ready_listener.subscribe(self.orchestrators[0].notify_ready)

        self._fatal: queue.Queue[BaseException] = queue.Queue()
        self._threads: list[threading.Thread] = []

    def _run_goal(self, orchestrator: GoalOrchestrator) -> None:
        try:
            orchestrator.run_forever()
        except BaseException as exc:
            logger.critical(
                "%s: unrecoverable error", goal_label(orchestrator.goal), exc_info=exc
            )
            self._fatal.put(exc)

    def start(self) -> None:
        """Start watching and one thread per goal."""
        if self.ready_listener is not None:
            self.ready_listener.install()
        if self.watcher is not None:
            self.watcher.add_dir(".")  # makefile changes trigger checks
            self.watcher.start()
        for orchestrator in self.orchestrators:
            thread = threading.Thread(
                target=self._run_goal,
                args=(orchestrator,),
                name=f"goal-{goal_label(orchestrator.goal)}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)

    def wait(self) -> None:
        """Block until a goal fails unrecoverably, then re-raise its error."""
        exc = self._fatal.get()
        raise RuntimeError("remake stopped after an unrecoverable error") from exc

    def stop(self) -> None:
        """Stop watching and kill every running build."""
        if self.watcher is not None:
            self.watcher.stop()
        if self.ready_listener is not None:
            self.ready_listener.uninstall()
        for orchestrator in self.orchestrators:
            orchestrator.shutdown()

    def run(self) -> None:
        self.start()
        try:
            self.wait()
        finally:
            self.stop()
