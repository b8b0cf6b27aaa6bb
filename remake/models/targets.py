"""Make database models: one record per target in ``make --print-data-base``."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class TargetRecord(BaseModel):
    """Everything make reported about a single target.

    Built once per dump block by ``remake.makedb.parse.parse_target_block``
    and never mutated afterwards.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    normal_prerequisites: list[str] = []
    order_only_prerequisites: list[str] = []
    is_not_a_target: bool = False
    is_phony: bool = False  # make always reports these as needing an update
    needs_update: bool = False
    does_not_exist: bool = False
    last_modified: datetime | None = None  # local time, None if never printed

    @property
    def status(self) -> str:
        """Short human-readable status: phony, missing, needs update or ok."""
        if self.is_phony:
            return "phony"
        if self.does_not_exist:
            return "missing"
        if self.needs_update:
            return "needs update"
        return "ok"

    def __str__(self) -> str:
        return f"{self.name} ({self.status})"


class DependencyClosure(BaseModel):
    """Transitive prerequisites of a target.

    ``normal`` entries are checked for existence and recency,
    ``order_only`` entries for existence only.
    """

    model_config = ConfigDict(frozen=True)

    normal: list[str] = []
    order_only: list[str] = []
