"""Remake data models: all Pydantic v2, all frozen (immutable)."""

from remake.models.events import CHECK_EVENTS, EventKind, GoalEvent
from remake.models.targets import DependencyClosure, TargetRecord
from remake.models.tasks import VALID_TRANSITIONS, TaskState

__all__ = [
    # targets
    "TargetRecord",
    "DependencyClosure",
    # tasks
    "TaskState",
    "VALID_TRANSITIONS",
    # events
    "EventKind",
    "GoalEvent",
    "CHECK_EVENTS",
]
