"""Shared filesystem watcher with debounced fan-out to per-goal clients.

One watchdog ``Observer`` serves every goal. Directories rather than files
are watched, non-recursively: that catches new files matched by makefile
wildcards without the open-file cost of recursive watches. Directories
created inside a watched directory are picked up as they appear.
"""

from __future__ import annotations

import contextlib
import logging
import os
import threading
from collections.abc import Callable, Iterable

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

# Open/close and attribute-only events carry no content change.
_RELEVANT_EVENTS = frozenset(
    {EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED}
)


def _watch_dir(name: str) -> str:
    """The directory to watch for a file or directory name."""
    path = os.path.abspath(name)
    if os.path.isdir(path):
        return path
    return os.path.dirname(path)


class WatchClient:
    """One goal's view of the shared watcher.

    Parameters
    ----------
    watcher:
        The shared watcher this client belongs to.
    callback:
        Called once per debounced batch of filesystem events.
    """

    def __init__(self, watcher: SharedWatcher, callback: Callable[[], None]) -> None:
        self.watcher = watcher
        self._callback = callback

    def watch_files(self, names: Iterable[str]) -> None:
        """Watch the directories containing ``names``."""
        for name in names:
            self.watcher.add_dir(name)

    def notify(self) -> None:
        self._callback()


class SharedWatcher(FileSystemEventHandler):
    """Fans filesystem events out to clients after a debounce period.

    Parameters
    ----------
    debounce:
        Seconds of quiet required before clients are notified.
    """

    def __init__(self, debounce: float, observer: Observer | None = None) -> None:
        super().__init__()
        self.debounce = debounce
        self._observer = observer if observer is not None else Observer()
        self._clients: list[WatchClient] = []
        self._watched: dict[str, object] = {}
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        self._observer.start()

    def stop(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        self._observer.stop()
        self._observer.join()

    def new_client(self, callback: Callable[[], None]) -> WatchClient:
        client = WatchClient(self, callback)
        with self._lock:
            self._clients.append(client)
        return client

    # ------------------------------------------------------------------
    # Watches
    # ------------------------------------------------------------------

    @property
    def watched_dirs(self) -> list[str]:
        with self._lock:
            return sorted(self._watched)

    def add_dir(self, name: str) -> None:
        """Watch ``name`` if it is a directory, else its parent directory."""
        path = _watch_dir(name)
        with self._lock:
            if path in self._watched:
                return
            try:
                self._watched[path] = self._observer.schedule(
                    self, path, recursive=False
                )
            except OSError as exc:
                logger.warning("Error watching directory '%s': %s", path, exc)
                return
        logger.debug("Watching %s", path)

    def _forget(self, path: str) -> None:
        with self._lock:
            watch = self._watched.pop(os.path.abspath(path), None)
        if watch is not None:
            # The watch may already be gone along with the directory.
            with contextlib.suppress(KeyError, OSError):
                self._observer.unschedule(watch)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in _RELEVANT_EVENTS:
            return
        src_path = os.fsdecode(event.src_path)
        if os.path.basename(src_path).startswith("."):
            return  # dot files, mostly version control
        if event.event_type == EVENT_TYPE_CREATED and event.is_directory:
            self.add_dir(src_path)
        elif event.event_type == EVENT_TYPE_DELETED and event.is_directory:
            self._forget(src_path)
        self._schedule_notify()

    def _schedule_notify(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce, self.notify_clients)
            self._timer.daemon = True
            self._timer.start()

    def notify_clients(self) -> None:
        with self._lock:
            clients = list(self._clients)
            self._timer = None
        for client in clients:
            client.notify()
