"""Events delivered to a goal's inbox and emitted by its event selector."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class EventKind(str, Enum):
    """What woke the orchestration loop up."""

    READY = "ready"  # "remake ready" was run by the build
    CHANGED = "changed"  # debounced filesystem change
    EXITED = "exited"  # the build process exited
    POLL = "poll"  # periodic poll tick
    FORCED_CHECK = "forced_check"  # one-shot check shortly after start
    STALLED = "stalled"  # grace period elapsed without progress


# Events that only ask for a fresh staleness check.
CHECK_EVENTS: frozenset[EventKind] = frozenset(
    {EventKind.CHANGED, EventKind.POLL, EventKind.FORCED_CHECK}
)


class GoalEvent(BaseModel):
    """A single event for one goal.

    ``origin`` identifies the build task that produced an EXITED event so
    exits of superseded processes can be told apart from the current one.
    """

    model_config = ConfigDict(frozen=True)

    kind: EventKind
    origin: str | None = None
    returncode: int | None = None
