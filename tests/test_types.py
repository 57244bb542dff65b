"""Tests for cells, result sets and host addresses."""

import collections
import datetime

import pytest

from cqlcli.db.errors import DriverConnectionError, DriverStatementError, ExecutionCancelled
from cqlcli.db.types import Cell, CellKind, Column, ErrorKind, HostAddress, ResultSet


class TestCell:
    """Tests for Cell.of."""

    @pytest.mark.parametrize(
        "value, kind",
        [
            (None, CellKind.NULL),
            (True, CellKind.BOOLEAN),
            (3, CellKind.INTEGER),
            (2.5, CellKind.FLOAT),
            ("x", CellKind.TEXT),
            (bytearray(b"ab"), CellKind.BLOB),
            (datetime.datetime(2024, 1, 1), CellKind.TIMESTAMP),
            (datetime.date(2024, 1, 1), CellKind.DATE),
            (datetime.time(1, 2), CellKind.TIME),
            (datetime.timedelta(seconds=3), CellKind.DURATION),
            ([1], CellKind.LIST),
            ({1}, CellKind.SET),
            ({"a": 1}, CellKind.MAP),
            ((1, 2), CellKind.TUPLE),
        ],
    )
    def test_kind(self, value, kind):
        assert Cell.of(value).kind is kind

    def test_bool_is_not_integer(self):
        assert Cell.of(False) == Cell(CellKind.BOOLEAN, False)

    def test_cell_passes_through(self):
        cell = Cell(CellKind.TEXT, "x")
        assert Cell.of(cell) is cell

    def test_named_tuple_becomes_map(self):
        Address = collections.namedtuple("Address", ["street", "zip"])
        cell = Cell.of(Address("Main", 12345))
        assert cell.kind is CellKind.MAP
        assert [(k.value, v.value) for k, v in cell.value] == [
            ("street", "Main"),
            ("zip", 12345),
        ]

    def test_null(self):
        assert Cell.null().is_null
        assert not Cell.of(0).is_null


class TestResultSet:
    """Tests for lazy, single-pass result sets."""

    def test_rows_are_lazy(self):
        produced = []

        def rows():
            for i in range(3):
                produced.append(i)
                yield [i]

        result = ResultSet([Column("n", "int")], rows())
        assert produced == []
        first = next(iter(result))
        assert first == (Cell(CellKind.INTEGER, 0),)
        assert produced == [0]

    def test_single_iteration(self):
        result = ResultSet([Column("n")], [[1]])
        list(result)
        with pytest.raises(RuntimeError):
            list(result)

    def test_width_mismatch(self):
        result = ResultSet([Column("a"), Column("b")], [[1]])
        with pytest.raises(ValueError):
            list(result)

    def test_column_names(self):
        result = ResultSet([Column("a"), Column("b", "int")], [])
        assert result.column_names == ["a", "b"]


class TestHostAddress:
    """Tests for HostAddress display."""

    def test_ipv4(self):
        assert str(HostAddress("10.0.0.1")) == "10.0.0.1:9042"

    def test_ipv6(self):
        assert str(HostAddress("::1", 9142)) == "[::1]:9142"


class TestErrors:
    """Tests for mapping exceptions to failures."""

    def test_connection_error_is_retriable(self):
        failure = DriverConnectionError("refused").to_failure()
        assert failure.kind is ErrorKind.CONNECTION
        assert failure.retriable

    def test_statement_error(self):
        failure = DriverStatementError("syntax error").to_failure()
        assert failure.kind is ErrorKind.STATEMENT
        assert not failure.retriable

    def test_cancelled(self):
        failure = ExecutionCancelled().to_failure()
        assert failure.kind is ErrorKind.CANCELLED
        assert failure.message == "Statement cancelled"
