"""Filesystem watching for change-triggered staleness checks."""

from remake.watch.watcher import SharedWatcher, WatchClient

__all__ = ["SharedWatcher", "WatchClient"]
