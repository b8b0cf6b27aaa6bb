"""Parsing of ``make --question --print-data-base`` output.

The dump starts with variables and rules, announces the default goal with a
``.DEFAULT_GOAL := name`` line and then lists every file make knows about
under a ``# Files`` header, one blank-line-separated block per file::

    # Not a target:
    Makefile:
    #  Last modified 2024-03-01 12:00:00.123456789

    all: app | build
    #  Phony target (prerequisite of .PHONY).
    #  File does not exist.
    #  Needs to be updated (-q is set).
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from datetime import datetime

from remake.errors import ParseError
from remake.models.targets import TargetRecord

DEFAULT_GOAL_PREFIX = ".DEFAULT_GOAL := "
FILES_HEADER = "# Files"
FILES_TRAILER = "# files hash-table stats:"

LAST_MODIFIED_FORMAT = "%Y-%m-%d %H:%M:%S"

# make prints a raw zero time shifted into the local zone when stat fails in
# a way it does not report; it is not a real modification time.
EPOCH_BUG_SENTINEL = "1970-01-01 00:59:56"

_NOT_A_TARGET = re.compile(r"#\s+Not a target:")
_PHONY = re.compile(r"#\s+Phony target \(prerequisite of \.PHONY\)\.")
_NEEDS_UPDATE = re.compile(r"#\s+Needs to be updated \(-q is set\)\.")
_DOES_NOT_EXIST = re.compile(r"#\s+File does not exist\.")
_LAST_MODIFIED = re.compile(r"#\s+Last modified\s+(.+)")
_FRACTION = re.compile(r"^(.*\d{2}:\d{2}:\d{2})\.(\d+)$")


def parse_timestamp(value: str) -> datetime:
    """Parse a ``Last modified`` value as an aware local time.

    make 4.x appends nanoseconds; they are truncated to microseconds.
    """
    value = value.strip()
    fraction = ""
    match = _FRACTION.match(value)
    if match:
        value, fraction = match.group(1), match.group(2)

    if value == EPOCH_BUG_SENTINEL:
        raise ParseError(f"Unusable last modified time: {value}")

    try:
        parsed = datetime.strptime(value, LAST_MODIFIED_FORMAT)
    except ValueError as exc:
        raise ParseError(f"Invalid last modified time: {value!r}") from exc

    if fraction:
        parsed = parsed.replace(microsecond=int(fraction[:6].ljust(6, "0")))
    return parsed.astimezone()


def _parse_names(line: str) -> tuple[str, list[str], list[str]]:
    """Split ``name: normal... | order-only...`` into its parts."""
    name, sep, rest = line.partition(":")
    name = name.strip()
    if not sep or not name:
        raise ParseError(f"Unable to parse line: {line}", line)
    if rest.startswith(":"):
        rest = rest[1:]  # double-colon rule

    normal: list[str] = []
    order_only: list[str] = []
    order_only_mode = False
    for word in rest.split():
        if word.startswith("|"):
            order_only_mode = True
            word = word[1:]
            if not word:
                continue
        if order_only_mode:
            order_only.append(word)
        else:
            normal.append(word)
    return name, normal, order_only


def parse_target_block(block: str) -> TargetRecord:
    """Parse one target's block of text into a ``TargetRecord``.

    Raises
    ------
    ParseError
        If the block has no name line or carries an unusable timestamp.
    """
    fields: dict = {}
    name = ""

    for line in block.splitlines():
        if not line.strip() or line.startswith("\t"):
            continue  # recipe lines
        if _NOT_A_TARGET.match(line):
            fields["is_not_a_target"] = True
        elif not name and not line.startswith("#"):
            name, normal, order_only = _parse_names(line)
            fields["normal_prerequisites"] = normal
            fields["order_only_prerequisites"] = order_only
        elif _PHONY.match(line):
            fields["is_phony"] = True
        elif _NEEDS_UPDATE.match(line):
            fields["needs_update"] = True
        elif _DOES_NOT_EXIST.match(line):
            fields["does_not_exist"] = True
        elif match := _LAST_MODIFIED.match(line):
            try:
                fields["last_modified"] = parse_timestamp(match.group(1))
            except ParseError as exc:
                raise ParseError(f"{name or '<unnamed>'}: {exc}", block) from exc

    if not name:
        raise ParseError("Unable to find a target name in block", block)

    return TargetRecord(name=name, **fields)


def read_dump(lines: Iterable[str]) -> Iterator[tuple[str, str]]:
    """Yield ``("default_goal", name)`` and ``("block", text)`` items.

    Nothing is yielded for blocks when the ``# Files`` header is missing.
    """
    files_section = False
    block: list[str] = []

    for raw in lines:
        line = raw.rstrip("\r\n")
        if not files_section:
            if line.startswith(DEFAULT_GOAL_PREFIX):
                yield "default_goal", line[len(DEFAULT_GOAL_PREFIX):].strip()
            elif line == FILES_HEADER:
                files_section = True
            continue

        if line.startswith(FILES_TRAILER):
            break
        if line.strip():
            block.append(line)
        elif block:
            yield "block", "\n".join(block)
            block = []

    if block:
        yield "block", "\n".join(block)
