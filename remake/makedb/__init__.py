"""Make database parsing and staleness queries."""

from remake.makedb.database import Database
from remake.makedb.parse import parse_target_block, parse_timestamp, read_dump

__all__ = ["Database", "parse_target_block", "parse_timestamp", "read_dump"]
