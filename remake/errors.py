"""Exception hierarchy shared by the staleness engine and the orchestrator.

Errors deriving from ``RemakeError`` with ``recoverable = True`` end the
current build cycle of a goal; the orchestrator logs them, sleeps and starts
a fresh cycle. Everything else is a contract violation and propagates.
"""

from __future__ import annotations


class RemakeError(RuntimeError):
    """Base class for remake errors."""

    recoverable: bool = False


class QueryError(RemakeError):
    """Raised when make's dependency database could not be obtained."""

    recoverable = True


class ParseError(QueryError):
    """Raised when a block of the make database cannot be parsed."""

    def __init__(self, message: str, block: str = "") -> None:
        super().__init__(message)
        self.block = block


class TargetNotFoundError(LookupError):
    """Raised when a target is not present in a freshly populated database."""


class LatchMisuseError(RuntimeError):
    """Raised when progress sampling and change detection are used out of order."""


class InvalidTransitionError(RuntimeError):
    """Raised when a requested build task state transition is not valid."""


class BuildStartError(RemakeError):
    """Raised when the build process could not be spawned."""

    recoverable = True


class GracePeriodExceededError(RemakeError):
    """Raised when a build made no progress within the grace period."""

    recoverable = True


class ReadySignalError(RemakeError):
    """Raised when the ready signal could not be delivered."""
