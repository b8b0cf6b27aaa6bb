"""Build task state models: deterministic lifecycle transitions."""

from __future__ import annotations

from enum import Enum


class TaskState(str, Enum):
    """Lifecycle of one ``make`` process for one goal."""

    CREATED = "created"
    STARTED = "started"
    PROGRESSING = "progressing"
    STALLED = "stalled"
    FINISHED = "finished"
    SUPERSEDED = "superseded"


# Valid state transitions, enforced by BuildTask._transition.
# SUPERSEDED is terminal.
VALID_TRANSITIONS: dict[TaskState, set[TaskState]] = {
    TaskState.CREATED: {TaskState.STARTED},
    TaskState.STARTED: {
        TaskState.PROGRESSING,
        TaskState.STALLED,
        TaskState.FINISHED,
        TaskState.SUPERSEDED,
    },
    TaskState.PROGRESSING: {
        TaskState.PROGRESSING,
        TaskState.STALLED,
        TaskState.FINISHED,
        TaskState.SUPERSEDED,
    },
    TaskState.STALLED: {
        TaskState.PROGRESSING,
        TaskState.STALLED,
        TaskState.FINISHED,
        TaskState.SUPERSEDED,
    },
    TaskState.FINISHED: {TaskState.SUPERSEDED},  # a finished build is replaced on change
    TaskState.SUPERSEDED: set(),  # terminal
}
