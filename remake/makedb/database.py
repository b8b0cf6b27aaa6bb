"""Make dependency database with transitive closure and staleness queries.

The database is populated once from a single ``make --print-data-base``
dump and treated as immutable afterwards. Staleness rules:

- A real file target is stale when make says it is missing or needs an
  update.
- A phony target is always reported as needing an update, so its own flags
  are ignored. Instead its real file dependencies are compared against a
  reference time, which catches files changed after the phony command
  last started.
- Order-only prerequisites, and everything reached through them, only need
  to exist.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator
from datetime import datetime

from remake.errors import TargetNotFoundError
from remake.makedb.parse import parse_target_block, read_dump
from remake.models.targets import DependencyClosure, TargetRecord


class _UniqueQueue:
    """FIFO queue that accepts each name at most once."""

    def __init__(self, names: Iterable[str] = ()) -> None:
        self._queue: deque[str] = deque()
        self._seen: set[str] = set()
        self.extend(names)

    def extend(self, names: Iterable[str]) -> None:
        for name in names:
            if name not in self._seen:
                self._seen.add(name)
                self._queue.append(name)

    def popleft(self) -> str:
        return self._queue.popleft()

    def __len__(self) -> int:
        return len(self._queue)


class Database:
    """All targets make reported for one query, plus the default goal."""

    def __init__(self) -> None:
        self.default_goal: str = ""
        self.targets: dict[str, TargetRecord] = {}

    @classmethod
    def from_dump(cls, dump: str | Iterable[str]) -> Database:
        """Build and populate a database in one step."""
        db = cls()
        db.populate(dump)
        return db

    def populate(self, dump: str | Iterable[str]) -> None:
        """Populate from the raw output of ``make --print-data-base``.

        A parse error propagates and leaves no partially usable result:
        records are only stored once the whole dump parsed.
        """
        lines = dump.splitlines() if isinstance(dump, str) else dump
        default_goal = self.default_goal
        targets: dict[str, TargetRecord] = {}
        for kind, value in read_dump(lines):
            if kind == "default_goal":
                default_goal = value
            else:
                record = parse_target_block(value)
                targets[record.name] = record
        self.default_goal = default_goal
        self.targets.update(targets)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_target(self, name: str) -> TargetRecord:
        """Return a target by name; an empty name means the default goal."""
        resolved = name or self.default_goal
        try:
            return self.targets[resolved]
        except KeyError:
            raise TargetNotFoundError(
                f"Target '{resolved or name}' not found"
            ) from None

    def get_dependency_closure(self, name: str) -> DependencyClosure:
        """Return the transitive prerequisites of a target (BFS).

        The normal queue is drained first. Prerequisites of an order-only
        prerequisite stay order-only for the original target, whatever kind
        of edge leads to them.
        """
        target = self.get_target(name)
        normal: list[str] = []
        order_only: list[str] = []

        nq = _UniqueQueue(target.normal_prerequisites)
        oq = _UniqueQueue(target.order_only_prerequisites)

        while nq:
            dep = self.get_target(nq.popleft())
            normal.append(dep.name)
            nq.extend(dep.normal_prerequisites)
            oq.extend(dep.order_only_prerequisites)

        while oq:
            dep = self.get_target(oq.popleft())
            order_only.append(dep.name)
            oq.extend(dep.normal_prerequisites)
            oq.extend(dep.order_only_prerequisites)

        return DependencyClosure(normal=normal, order_only=order_only)

    # ------------------------------------------------------------------
    # Staleness
    # ------------------------------------------------------------------

    def _stale_entries(self, name: str, since: datetime) -> Iterator[str]:
        """Yield the name of every entry that makes the target stale."""
        target = self.get_target(name)
        if not target.is_phony and (target.does_not_exist or target.needs_update):
            yield target.name

        closure = self.get_dependency_closure(target.name)

        for dep_name in closure.normal:
            dep = self.get_target(dep_name)
            if dep.is_phony:
                continue
            if dep.does_not_exist or dep.needs_update:
                yield dep.name
            elif (
                target.is_phony
                and dep.last_modified is not None
                and dep.last_modified > since
            ):
                yield dep.name

        for dep_name in closure.order_only:
            dep = self.get_target(dep_name)
            if not dep.is_phony and dep.does_not_exist:
                yield dep.name

    def is_stale(self, name: str, since: datetime) -> bool:
        """Whether the target, or anything it depends on, needs rebuilding."""
        return next(self._stale_entries(name, since), None) is not None

    def count_pending(self, name: str, since: datetime) -> int:
        """Count the entries that keep the target from being up to date.

        A decreasing count between samples means the build is progressing.
        """
        return sum(1 for _ in self._stale_entries(name, since))

    def watched_files(self, name: str) -> list[str]:
        """Names of the target and its dependencies that are real files."""
        target = self.get_target(name)
        closure = self.get_dependency_closure(target.name)
        names: list[str] = []
        for dep_name in [target.name, *closure.normal, *closure.order_only]:
            if dep_name not in names and not self.get_target(dep_name).is_phony:
                names.append(dep_name)
        return names
