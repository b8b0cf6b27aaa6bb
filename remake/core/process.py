"""Process spawn/kill collaborator for build commands.

Defines the ``ProcessHandle`` and ``ProcessSpawner`` Protocols the build
task depends on, and the ``subprocess`` backed default implementation.

Each build runs in its own session so ``kill()`` can terminate the whole
process group; make's recipe children would otherwise outlive it.
"""

from __future__ import annotations

import logging
import os
import shlex
import signal
import subprocess
import threading
from collections.abc import Callable, Sequence
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

ExitCallback = Callable[[int], None]


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class ProcessHandle(Protocol):
    """A running (or finished) build process owned by one build task."""

    @property
    def returncode(self) -> int | None:
        """Exit status once the process has exited, otherwise ``None``."""
        ...

    def is_running(self) -> bool:
        """Return ``True`` while the process has not exited."""
        ...

    def kill(self) -> None:
        """Terminate the process and block until it has exited.

        Raises ``OSError`` when the process could not be signalled.
        """
        ...


@runtime_checkable
class ProcessSpawner(Protocol):
    """Starts build processes."""

    def start(
        self, name: str, args: Sequence[str], on_exit: ExitCallback
    ) -> ProcessHandle:
        """Start ``name`` with ``args``; ``on_exit`` receives the exit status.

        Raises ``OSError`` when the process cannot be started.
        """
        ...


# ---------------------------------------------------------------------------
# Default implementation
# ---------------------------------------------------------------------------


class BuildProcess:
    """A ``subprocess.Popen`` wrapper with an exit notification thread.

    Parameters
    ----------
    argv:
        Full command line, program first.
    on_exit:
        Called from the waiter thread with the exit status.
    """

    def __init__(self, argv: Sequence[str], on_exit: ExitCallback) -> None:
        self.argv = list(argv)
        self._on_exit = on_exit
        self._popen: subprocess.Popen | None = None
        self._exited = threading.Event()

    def start(self) -> None:
        """Start the process and a thread that waits for it to exit."""
        self._popen = subprocess.Popen(self.argv, start_new_session=True)
        waiter = threading.Thread(
            target=self._wait,
            name=f"wait-{self._popen.pid}",
            daemon=True,
        )
        waiter.start()

    def _wait(self) -> None:
        assert self._popen is not None
        returncode = self._popen.wait()
        self._exited.set()
        logger.debug("%s exited with status %d", self, returncode)
        self._on_exit(returncode)

    @property
    def pid(self) -> int | None:
        return self._popen.pid if self._popen else None

    @property
    def returncode(self) -> int | None:
        if not self._exited.is_set() or self._popen is None:
            return None
        return self._popen.returncode

    def is_running(self) -> bool:
        return self._popen is not None and not self._exited.is_set()

    def kill(self) -> None:
        """Send SIGTERM to the process group and wait for the exit."""
        if not self.is_running():
            return
        assert self._popen is not None
        try:
            os.killpg(self._popen.pid, signal.SIGTERM)
        except ProcessLookupError:
            pass  # already gone, the waiter thread will notice
        self._exited.wait()

    def __str__(self) -> str:
        return shlex.join(self.argv)


class SubprocessSpawner:
    """Spawns ``BuildProcess`` instances."""

    def start(
        self, name: str, args: Sequence[str], on_exit: ExitCallback
    ) -> BuildProcess:
        process = BuildProcess([name, *args], on_exit)
        process.start()
        return process
