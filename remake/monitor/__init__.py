"""Terminal rendering of goal status."""

from remake.monitor.renderer import StatusRenderer

__all__ = ["StatusRenderer"]
