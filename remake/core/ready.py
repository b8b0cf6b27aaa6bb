"""The "ready" signal between a build and the remake process running it.

A long-running build (a dev server, say) can run ``remake ready`` once it
has finished its initial work. That walks up the process tree to the
nearest ancestor with the same process name, the remake that started the
build, and sends it SIGUSR1. The receiving remake then leaves grace mode
straight away instead of waiting for the pending count to reach zero.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
from collections.abc import Callable

from remake.errors import ReadySignalError

logger = logging.getLogger(__name__)

READY_SIGNAL = signal.SIGUSR1


class ReadySignalListener:
    """Calls registered callbacks whenever the ready signal arrives.

    ``install()`` must run on the main thread, as Python only delivers
    signals there.
    """

    def __init__(self) -> None:
        self._callbacks: list[Callable[[], None]] = []
        self._previous: object = None

    def subscribe(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)

    def install(self) -> None:
        self._previous = signal.signal(READY_SIGNAL, self._handle)

    def uninstall(self) -> None:
        if self._previous is not None:
            signal.signal(READY_SIGNAL, self._previous)
            self._previous = None

    def _handle(self, signum: int, frame: object) -> None:
        logger.debug("Received ready signal")
        for callback in self._callbacks:
            callback()


def _ps(pid: int, field: str) -> str:
    try:
        out = subprocess.run(
            ["ps", "-p", str(pid), "-o", f"{field}="],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
            check=True,
        ).stdout
    except (OSError, subprocess.CalledProcessError) as exc:
        raise ReadySignalError(f"Cannot inspect process {pid}: {exc}") from exc
    return out.strip()


def get_process_name(pid: int) -> str:
    """Base name of a process's command."""
    return os.path.basename(_ps(pid, "comm"))


def get_parent_id(pid: int) -> int:
    value = _ps(pid, "ppid")
    try:
        return int(value)
    except ValueError as exc:
        raise ReadySignalError(f"Unexpected parent id for {pid}: {value!r}") from exc


def find_ancestor(pid: int | None = None) -> int | None:
    """Nearest ancestor with the same process name, or ``None``."""
    pid = os.getpid() if pid is None else pid
    name = get_process_name(pid)
    parent = get_parent_id(pid)
    while parent > 0:
        if get_process_name(parent) == name:
            return parent
        parent = get_parent_id(parent)
    return None


def send_ready_signal() -> bool:
    """Signal the ancestor remake process.

    Returns ``False`` when there is no ancestor to signal, which happens
    whenever the build runs outside remake.
    """
    ancestor = find_ancestor()
    if ancestor is None:
        logger.debug("No ancestor remake process to signal")
        return False
    try:
        os.kill(ancestor, READY_SIGNAL)
    except OSError as exc:
        raise ReadySignalError(f"Cannot signal process {ancestor}: {exc}") from exc
    logger.debug("Sent ready signal to %d", ancestor)
    return True
