"""Wait for the first of several event sources.

A goal's external sources (ready signal, filesystem watcher, process exit)
all ``put`` into one ``queue.Queue`` inbox. Timer-like sources (poll ticks,
the one-shot forced check, the grace stall timer) are deadlines kept by the
selector itself, so nothing has to be cancelled when a phase ends: the
orchestrator builds a new ``EventSelector`` every time it enters grace or
monitor mode and simply drops the old one.
"""

from __future__ import annotations

import logging
import queue
import time

from remake.models.events import EventKind, GoalEvent

logger = logging.getLogger(__name__)


class EventSelector:
    """Merges a goal's inbox with phase-local timers.

    Parameters
    ----------
    inbox:
        The goal's inbox. Events are consumed from it.
    origin:
        Task id of the current build; EXITED events from other tasks are
        dropped.
    """

    def __init__(self, inbox: queue.Queue[GoalEvent], origin: str) -> None:
        self._inbox = inbox
        self._origin = origin
        self._deadlines: dict[EventKind, float] = {}
        self._intervals: dict[EventKind, float] = {}

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def after(self, kind: EventKind, delay: float) -> None:
        """Emit ``kind`` once, ``delay`` seconds from now (re-arms if set)."""
        self._deadlines[kind] = time.monotonic() + delay

    def every(self, kind: EventKind, interval: float) -> None:
        """Emit ``kind`` every ``interval`` seconds; 0 or less disables it."""
        if interval <= 0:
            return
        self._intervals[kind] = interval
        self._deadlines[kind] = time.monotonic() + interval

    def _fire_due(self, now: float) -> GoalEvent | None:
        if not self._deadlines:
            return None
        kind, deadline = min(self._deadlines.items(), key=lambda item: item[1])
        if deadline > now:
            return None
        interval = self._intervals.get(kind)
        if interval:
            self._deadlines[kind] = now + interval
        else:
            del self._deadlines[kind]
        return GoalEvent(kind=kind, origin=self._origin)

    def _timeout(self, now: float) -> float | None:
        if not self._deadlines:
            return None
        return max(0.0, min(self._deadlines.values()) - now)

    # ------------------------------------------------------------------
    # Waiting
    # ------------------------------------------------------------------

    def wait(self) -> GoalEvent:
        """Block until the next event is available and return it."""
        while True:
            now = time.monotonic()
            fired = self._fire_due(now)
            if fired is not None:
                return fired
            try:
                event = self._inbox.get(timeout=self._timeout(now))
            except queue.Empty:
                continue
            if event.kind == EventKind.EXITED and event.origin != self._origin:
                logger.debug("Ignoring exit of superseded build %s", event.origin)
                continue
            return event
