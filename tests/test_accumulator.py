"""Tests for statement accumulation and meta-command parsing."""

import pytest

from cqlcli.cli.accumulator import (
    MetaCommand,
    Statement,
    StatementAccumulator,
    find_terminator,
    parse_meta_command,
    strip_comments,
)
from cqlcli.db.errors import IncompleteStatementError
from cqlcli.db.types import ErrorKind


def feed_all(lines):
    accumulator = StatementAccumulator()
    units = []
    for line in lines:
        units.extend(accumulator.feed(line))
    return accumulator, units


class TestParseMetaCommand:
    """Tests for recognizing system keywords and backslash commands."""

    @pytest.mark.parametrize("line", ["quit", "QUIT", "  exit  ", "exit;", "Help"])
    def test_system_keywords(self, line):
        command = parse_meta_command(line)
        assert command is not None
        assert command.name == line.strip().rstrip(";").lower()
        assert command.args == ()

    def test_backslash_command_with_args(self):
        assert parse_meta_command("\\format JSON") == MetaCommand("\\format", ("JSON",))

    def test_backslash_name_is_lowercased(self):
        assert parse_meta_command("\\DT my_ks") == MetaCommand("\\dt", ("my_ks",))

    def test_trailing_terminator_is_ignored(self):
        assert parse_meta_command("\\dk;") == MetaCommand("\\dk")

    @pytest.mark.parametrize("line", ["", "   ", "SELECT 1;", "quitting", "help me"])
    def test_ordinary_input(self, line):
        assert parse_meta_command(line) is None


class TestFindTerminator:
    """Tests for locating the statement terminator."""

    def test_plain(self):
        assert find_terminator("SELECT 1;") == 8

    def test_ignores_terminator_in_string(self):
        text = "INSERT INTO t (a) VALUES ('x;y');"
        assert find_terminator(text) == len(text) - 1

    def test_doubled_quote_inside_string(self):
        text = "INSERT INTO t (a) VALUES ('it''s; fine');"
        assert find_terminator(text) == len(text) - 1

    def test_ignores_terminator_in_quoted_identifier(self):
        text = 'SELECT "a;b" FROM t;'
        assert find_terminator(text) == len(text) - 1

    def test_ignores_terminator_in_dollar_string(self):
        text = "CREATE FUNCTION f() AS $$ return 1; $$;"
        assert find_terminator(text) == len(text) - 1

    @pytest.mark.parametrize(
        "text",
        ["SELECT 1 -- done;", "SELECT 1 // done;", "SELECT /* ; */ 1", "SELECT 'open;"],
    )
    def test_no_terminator(self, text):
        assert find_terminator(text) == -1

    def test_strip_comments_keeps_literals(self):
        assert strip_comments("a -- b\n'-- c'") == "a  \n'-- c'"


class TestStatementAccumulator:
    """Tests for StatementAccumulator.feed, reset and finish."""

    def test_single_line_statement(self):
        accumulator, units = feed_all(["SELECT * FROM t;"])
        assert units == [Statement("SELECT * FROM t;")]
        assert not accumulator.pending

    def test_multi_line_statement(self):
        accumulator = StatementAccumulator()
        assert accumulator.feed("SELECT *") == []
        assert accumulator.pending
        assert accumulator.feed("FROM t") == []
        assert accumulator.feed("WHERE id = 1;") == [
            Statement("SELECT *\nFROM t\nWHERE id = 1;")
        ]
        assert not accumulator.pending

    def test_several_statements_on_one_line(self):
        _, units = feed_all(["SELECT 1; SELECT 2;"])
        assert units == [Statement("SELECT 1;"), Statement("SELECT 2;")]

    def test_remainder_starts_next_statement(self):
        accumulator = StatementAccumulator()
        assert accumulator.feed("SELECT 1; SELECT") == [Statement("SELECT 1;")]
        assert accumulator.pending
        assert accumulator.feed("2;") == [Statement("SELECT\n2;")]

    def test_string_spanning_lines(self):
        _, units = feed_all(["INSERT INTO t (a) VALUES ('one;", "two');"])
        assert units == [Statement("INSERT INTO t (a) VALUES ('one;\ntwo');")]

    def test_meta_command_only_at_statement_start(self):
        accumulator = StatementAccumulator()
        accumulator.feed("SELECT *")
        units = accumulator.feed("quit")
        assert units == []
        assert accumulator.pending

    def test_meta_command_is_returned(self):
        _, units = feed_all(["\\format csv"])
        assert units == [MetaCommand("\\format", ("csv",))]

    def test_blank_and_comment_lines_are_skipped(self):
        accumulator, units = feed_all(["", "   ", "-- a comment", "/* block */"])
        assert units == []
        assert not accumulator.pending

    def test_comment_only_statement_is_dropped(self):
        _, units = feed_all(["-- note", ";", "SELECT 1;"])
        assert units == [Statement("SELECT 1;")]

    def test_reset_discards_partial_input(self):
        accumulator = StatementAccumulator()
        accumulator.feed("SELECT *")
        accumulator.reset()
        assert not accumulator.pending
        assert accumulator.feed("quit") == [MetaCommand("quit")]

    def test_finish_with_open_statement(self):
        accumulator = StatementAccumulator()
        accumulator.feed("SELECT * FROM t")
        with pytest.raises(IncompleteStatementError) as excinfo:
            accumulator.finish()
        assert excinfo.value.to_failure().kind is ErrorKind.INCOMPLETE_STATEMENT
        assert "SELECT * FROM t" in str(excinfo.value)
        assert not accumulator.pending

    def test_finish_after_complete_input(self):
        accumulator, _ = feed_all(["SELECT 1;", "-- trailing comment"])
        accumulator.finish()
