"""Tests for parsing make database dumps: blocks, markers, timestamps."""

from __future__ import annotations

from datetime import datetime

import pytest

from remake.errors import ParseError, QueryError
from remake.makedb.parse import parse_target_block, parse_timestamp, read_dump


class TestParseTargetBlock:
    def test_name_and_normal_prerequisites(self):
        record = parse_target_block("app: main.o util.o\n#  Implicit rule search has not been done.")
        assert record.name == "app"
        assert record.normal_prerequisites == ["main.o", "util.o"]
        assert record.order_only_prerequisites == []

    def test_order_only_prerequisites(self):
        record = parse_target_block("out/app: main.o | out")
        assert record.normal_prerequisites == ["main.o"]
        assert record.order_only_prerequisites == ["out"]

    def test_order_only_marker_attached_to_name(self):
        record = parse_target_block("app: main.o |out build")
        assert record.order_only_prerequisites == ["out", "build"]

    def test_only_order_only_prerequisites(self):
        record = parse_target_block("app: | out")
        assert record.normal_prerequisites == []
        assert record.order_only_prerequisites == ["out"]

    def test_double_colon_rule(self):
        record = parse_target_block("clean:: tmp")
        assert record.name == "clean"
        assert record.normal_prerequisites == ["tmp"]

    def test_no_prerequisites(self):
        record = parse_target_block("main.c:")
        assert record.normal_prerequisites == []

    def test_markers(self):
        block = "\n".join([
            "all: app",
            "#  Phony target (prerequisite of .PHONY).",
            "#  File does not exist.",
            "#  Needs to be updated (-q is set).",
        ])
        record = parse_target_block(block)
        assert record.is_phony is True
        assert record.does_not_exist is True
        assert record.needs_update is True
        assert record.last_modified is None

    def test_defaults_without_markers(self):
        record = parse_target_block("main.c:")
        assert record.is_phony is False
        assert record.does_not_exist is False
        assert record.needs_update is False
        assert record.is_not_a_target is False

    def test_not_a_target_precedes_name(self):
        block = "# Not a target:\nMakefile:\n#  Last modified 2024-03-01 12:00:00"
        record = parse_target_block(block)
        assert record.name == "Makefile"
        assert record.is_not_a_target is True
        assert record.last_modified == datetime(2024, 3, 1, 12, 0, 0).astimezone()

    def test_recipe_lines_ignored(self):
        block = "\n".join([
            "app: main.o",
            "#  recipe to execute (from 'Makefile', line 2):",
            "\tcc -o app main.o: with colon",
        ])
        record = parse_target_block(block)
        assert record.name == "app"
        assert record.normal_prerequisites == ["main.o"]

    def test_missing_name_raises(self):
        with pytest.raises(ParseError, match="Unable to find a target name") as excinfo:
            parse_target_block("#  File does not exist.\n#  Needs to be updated (-q is set).")
        assert "File does not exist" in excinfo.value.block

    def test_epoch_sentinel_raises(self):
        block = "app:\n#  Last modified 1970-01-01 00:59:56"
        with pytest.raises(ParseError, match="app"):
            parse_target_block(block)

    def test_parse_error_is_a_query_error(self):
        """Parse errors count as recoverable query failures."""
        with pytest.raises(QueryError):
            parse_target_block("# only a comment")


class TestParseTimestamp:
    def test_plain(self):
        parsed = parse_timestamp("2024-03-01 12:00:00")
        assert parsed == datetime(2024, 3, 1, 12, 0, 0).astimezone()
        assert parsed.tzinfo is not None

    def test_nanoseconds_truncated(self):
        parsed = parse_timestamp("2024-03-01 12:00:00.123456789")
        assert parsed.microsecond == 123456

    def test_short_fraction_padded(self):
        assert parse_timestamp("2024-03-01 12:00:00.5").microsecond == 500000

    def test_surrounding_whitespace(self):
        assert parse_timestamp("  2024-03-01 12:00:00  ").second == 0

    def test_sentinel_rejected(self):
        with pytest.raises(ParseError, match="Unusable"):
            parse_timestamp("1970-01-01 00:59:56")

    def test_sentinel_with_nanoseconds_rejected(self):
        with pytest.raises(ParseError, match="Unusable"):
            parse_timestamp("1970-01-01 00:59:56.000000000")

    def test_garbage_rejected(self):
        with pytest.raises(ParseError, match="Invalid"):
            parse_timestamp("yesterday")


class TestReadDump:
    def test_default_goal_and_blocks(self):
        lines = [
            "# Variables",
            ".DEFAULT_GOAL := app",
            "",
            "# Files",
            "",
            "app: main.o",
            "#  File does not exist.",
            "",
            "",
            "main.o:",
            "# files hash-table stats:",
            "ignored: after trailer",
        ]
        items = list(read_dump(lines))
        assert items == [
            ("default_goal", "app"),
            ("block", "app: main.o\n#  File does not exist."),
            ("block", "main.o:"),
        ]

    def test_no_files_header_yields_no_blocks(self):
        items = list(read_dump(["# Variables", "app: main.o", ""]))
        assert items == []

    def test_rules_before_header_ignored(self):
        items = list(read_dump(["app: before", "# Files", "main.c:"]))
        assert items == [("block", "main.c:")]

    def test_line_endings_stripped(self):
        items = list(read_dump(["# Files\n", "main.c:\r\n", "\n"]))
        assert items == [("block", "main.c:")]
