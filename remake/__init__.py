"""remake: continuous, change-triggered rebuilding on top of GNU make.

remake starts ``make`` for each goal, reads make's own dependency database
(``make --question --print-data-base``) to decide when the goal is current,
and kills and restarts the build whenever a dependency goes stale.
"""

__version__ = "0.1.0"
__description__ = "Keep make goals built, restarting them when they go stale"

from remake.core.orchestrator import GoalOrchestrator, Remake
from remake.makedb.database import Database
from remake.cli.app import app as cli

__all__ = ["GoalOrchestrator", "Remake", "Database", "cli", "__version__"]
