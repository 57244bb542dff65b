"""Shared types for the cluster session, drivers and renderers."""

import datetime
import enum
import uuid
from collections.abc import Mapping, Set
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Iterator, List, Optional, Tuple, Union


@dataclass(frozen=True)
class HostAddress:
    address: str
    port: int = 9042

    def __str__(self) -> str:
        if ":" in self.address:
            return f"[{self.address}]:{self.port}"
        return f"{self.address}:{self.port}"


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str = field(repr=False, default="")


@dataclass(frozen=True)
class TLSConfig:
    enabled: bool = False
    ca_cert: Optional[str] = None
    verify: bool = False


class ErrorKind(str, enum.Enum):
    CONNECTION = "connection"
    INCOMPLETE_STATEMENT = "incomplete_statement"
    INVALID_ARGUMENT = "invalid_argument"
    NO_KEYSPACE_SELECTED = "no_keyspace_selected"
    STATEMENT = "statement"
    CANCELLED = "cancelled"


class CellKind(str, enum.Enum):
    NULL = "null"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    TEXT = "text"
    BLOB = "blob"
    UUID = "uuid"
    TIMESTAMP = "timestamp"
    DATE = "date"
    TIME = "time"
    DURATION = "duration"
    LIST = "list"
    SET = "set"
    MAP = "map"
    TUPLE = "tuple"


COLLECTION_KINDS = frozenset(
    {CellKind.LIST, CellKind.SET, CellKind.MAP, CellKind.TUPLE}
)


@dataclass(frozen=True)
class Cell:
    """One typed value of a row.

    Scalar kinds hold the Python value directly. LIST, SET and TUPLE hold a
    tuple of nested cells; MAP holds a tuple of ``(key, value)`` cell pairs
    in server order.
    """

    kind: CellKind
    value: Any = None

    @property
    def is_null(self) -> bool:
        return self.kind is CellKind.NULL

    @classmethod
    def null(cls) -> "Cell":
        return cls(CellKind.NULL)

    @classmethod
    def of(cls, value: Any) -> "Cell":
        """Build a cell from a plain Python value."""
        if isinstance(value, Cell):
            return value
        if value is None:
            return cls.null()
        # bool before int: bool is an int subclass
        if isinstance(value, bool):
            return cls(CellKind.BOOLEAN, value)
        if isinstance(value, int):
            return cls(CellKind.INTEGER, value)
        if isinstance(value, float):
            return cls(CellKind.FLOAT, value)
        if isinstance(value, Decimal):
            return cls(CellKind.DECIMAL, value)
        if isinstance(value, str):
            return cls(CellKind.TEXT, value)
        if isinstance(value, (bytes, bytearray, memoryview)):
            return cls(CellKind.BLOB, bytes(value))
        if isinstance(value, uuid.UUID):
            return cls(CellKind.UUID, value)
        if isinstance(value, datetime.datetime):
            return cls(CellKind.TIMESTAMP, value)
        if isinstance(value, datetime.date):
            return cls(CellKind.DATE, value)
        if isinstance(value, datetime.time):
            return cls(CellKind.TIME, value)
        if isinstance(value, datetime.timedelta):
            return cls(CellKind.DURATION, value)
        if isinstance(value, Mapping):
            return cls.map_of(value.items())
        if isinstance(value, tuple) and hasattr(value, "_fields"):
            return cls.map_of(zip(value._fields, value))
        if isinstance(value, tuple):
            return cls(CellKind.TUPLE, tuple(cls.of(v) for v in value))
        if isinstance(value, list):
            return cls(CellKind.LIST, tuple(cls.of(v) for v in value))
        if isinstance(value, Set):
            return cls(CellKind.SET, tuple(cls.of(v) for v in _ordered(value)))
        return cls(CellKind.TEXT, str(value))

    @classmethod
    def map_of(cls, pairs: Iterable[Tuple[Any, Any]]) -> "Cell":
        return cls(
            CellKind.MAP, tuple((cls.of(k), cls.of(v)) for k, v in pairs)
        )


def _ordered(values: Iterable[Any]) -> List[Any]:
    items = list(values)
    try:
        return sorted(items)
    except TypeError:
        return items


Row = Tuple[Cell, ...]


@dataclass(frozen=True)
class Column:
    name: str
    type: str = "text"


class ResultSet:
    """Columns plus a lazy row sequence.

    Rows are produced on demand from the underlying iterable, so a driver
    that pages results is only asked for the pages actually consumed. The
    sequence can be iterated once.
    """

    def __init__(self, columns: Iterable[Column], rows: Iterable[Iterable[Any]]):
        self.columns: Tuple[Column, ...] = tuple(columns)
        self._rows = rows
        self._consumed = False

    @property
    def column_names(self) -> List[str]:
        return [column.name for column in self.columns]

    def __iter__(self) -> Iterator[Row]:
        if self._consumed:
            raise RuntimeError("ResultSet rows can only be iterated once")
        self._consumed = True
        width = len(self.columns)
        for raw in self._rows:
            row = tuple(Cell.of(value) for value in raw)
            if len(row) != width:
                raise ValueError(
                    f"Row has {len(row)} value(s) but result has {width} column(s)"
                )
            yield row


@dataclass(frozen=True)
class Rows:
    result: ResultSet


@dataclass(frozen=True)
class Ack:
    description: str = "OK"


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str
    retriable: bool = False


ExecutionOutcome = Union[Rows, Ack, Failure]
