"""Rendering of execution outcomes as table, JSON or CSV."""

import csv
import datetime
import io
import json
import math
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from rich.console import Console
from rich.table import Table
from rich.text import Text

from cqlcli.cli.session_state import OutputFormat
from cqlcli.db.errors import CqlCliError
from cqlcli.db.types import (
    Ack,
    Cell,
    CellKind,
    ExecutionOutcome,
    Failure,
    ResultSet,
    Rows,
)

# Kinds written as quoted CQL literals when nested inside a collection.
_QUOTED_WHEN_NESTED = frozenset(
    {CellKind.TEXT, CellKind.TIMESTAMP, CellKind.DATE, CellKind.TIME}
)


def _float_text(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return repr(value)


def _timestamp_text(value: Any) -> str:
    if isinstance(value, datetime.datetime) and value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value.isoformat() if hasattr(value, "isoformat") else str(value)


def _iso_text(value: Any) -> str:
    return value.isoformat() if hasattr(value, "isoformat") else str(value)


def _blob_text(value: bytes) -> str:
    return "0x" + value.hex()


def _join(cells, opener: str, closer: str) -> str:
    return opener + ", ".join(cell_to_text(c, nested=True) for c in cells) + closer


def _map_text(pairs) -> str:
    items = (
        f"{cell_to_text(k, nested=True)}: {cell_to_text(v, nested=True)}"
        for k, v in pairs
    )
    return "{" + ", ".join(items) + "}"


_TEXT_FORMATTERS: Dict[CellKind, Callable[[Any], str]] = {
    CellKind.NULL: lambda value: "null",
    CellKind.BOOLEAN: lambda value: "true" if value else "false",
    CellKind.INTEGER: str,
    CellKind.FLOAT: _float_text,
    CellKind.DECIMAL: str,
    CellKind.TEXT: str,
    CellKind.BLOB: _blob_text,
    CellKind.UUID: str,
    CellKind.TIMESTAMP: _timestamp_text,
    CellKind.DATE: _iso_text,
    CellKind.TIME: _iso_text,
    CellKind.DURATION: str,
    CellKind.LIST: lambda cells: _join(cells, "[", "]"),
    CellKind.SET: lambda cells: _join(cells, "{", "}"),
    CellKind.TUPLE: lambda cells: _join(cells, "(", ")"),
    CellKind.MAP: _map_text,
}


def cell_to_text(cell: Cell, nested: bool = False) -> str:
    """Text form used by table and CSV output.

    Blobs are ``0x``-prefixed hex, timestamps ISO-8601 (naive values are
    UTC) and collections CQL literals: ``[..]`` lists, ``{..}`` sets,
    ``{k: v}`` maps and ``(..)`` tuples. Inside collections, strings and
    temporal values are single-quoted with ``''`` escapes.
    """
    text = _TEXT_FORMATTERS[cell.kind](cell.value)
    if nested and cell.kind in _QUOTED_WHEN_NESTED:
        return "'" + text.replace("'", "''") + "'"
    return text


def _json_float(value: float) -> Any:
    if math.isfinite(value):
        return value
    return _float_text(value)


def _json_map(pairs) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, value in pairs:
        name = key.value if key.kind is CellKind.TEXT else cell_to_text(key)
        result[name] = cell_to_json(value)
    return result


_JSON_CONVERTERS: Dict[CellKind, Callable[[Any], Any]] = {
    CellKind.NULL: lambda value: None,
    CellKind.BOOLEAN: bool,
    CellKind.INTEGER: int,
    CellKind.FLOAT: _json_float,
    CellKind.DECIMAL: str,
    CellKind.TEXT: str,
    CellKind.BLOB: _blob_text,
    CellKind.UUID: str,
    CellKind.TIMESTAMP: _timestamp_text,
    CellKind.DATE: _iso_text,
    CellKind.TIME: _iso_text,
    CellKind.DURATION: str,
    CellKind.LIST: lambda cells: [cell_to_json(c) for c in cells],
    CellKind.SET: lambda cells: [cell_to_json(c) for c in cells],
    CellKind.TUPLE: lambda cells: [cell_to_json(c) for c in cells],
    CellKind.MAP: _json_map,
}


def cell_to_json(cell: Cell) -> Any:
    """JSON-native value for a cell. Decimals stay strings to keep precision."""
    return _JSON_CONVERTERS[cell.kind](cell.value)


def json_keys(names: List[str]) -> List[str]:
    """Object keys for the columns. Repeated names get ``_1``, ``_2``... suffixes."""
    taken = set(names)
    keys: List[str] = []
    seen = set()
    for name in names:
        key, suffix = name, 0
        while key in seen or (key != name and key in taken):
            suffix += 1
            key = f"{name}_{suffix}"
        seen.add(key)
        keys.append(key)
    return keys


def iter_json(result: ResultSet) -> Iterator[str]:
    """Stream a JSON array of row objects, one row per chunk.

    If the row stream fails partway the array is still closed before the
    error propagates, so the output written so far stays valid JSON.
    """
    keys = json_keys(result.column_names)
    first = True
    try:
        for row in result:
            record = {key: cell_to_json(cell) for key, cell in zip(keys, row)}
            prefix = "[\n  " if first else ",\n  "
            first = False
            yield prefix + json.dumps(record, ensure_ascii=False)
    except CqlCliError:
        yield "[]" if first else "\n]"
        raise
    yield "[]" if first else "\n]"


def format_json(result: ResultSet) -> str:
    return "".join(iter_json(result))


def iter_csv(result: ResultSet) -> Iterator[str]:
    """Stream CSV lines: the header, then one line per row.

    Quoting is minimal: fields holding a comma, quote or line break are
    wrapped in double quotes with inner quotes doubled. Nulls are empty.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")

    def flush() -> str:
        text = buffer.getvalue()
        buffer.seek(0)
        buffer.truncate()
        return text

    writer.writerow(result.column_names)
    yield flush()
    for row in result:
        writer.writerow(["" if cell.is_null else cell_to_text(cell) for cell in row])
        yield flush()


def format_csv(result: ResultSet) -> str:
    return "".join(iter_csv(result))


def build_table(result: ResultSet) -> Tuple[Table, int]:
    """Materialize every row into a rich table. Returns the row count too."""
    table = Table(show_header=True, header_style="bold")
    for column in result.columns:
        table.add_column(column.name)
    count = 0
    for row in result:
        cells: List[Text] = []
        for cell in row:
            if cell.is_null:
                cells.append(Text("null", style="dim"))
            else:
                cells.append(Text(cell_to_text(cell)))
        table.add_row(*cells)
        count += 1
    return table, count


def format_table(result: ResultSet, width: int = 120) -> str:
    console = Console(file=io.StringIO(), width=width, color_system=None)
    ResultRenderer(console=console).render(Rows(result), OutputFormat.TABLE)
    return console.file.getvalue()


def _row_count(count: int) -> str:
    return f"({count} row)" if count == 1 else f"({count} rows)"


class ResultRenderer:
    """Writes outcomes to the data console and failures to the error console."""

    def __init__(
        self, console: Optional[Console] = None, err_console: Optional[Console] = None
    ):
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)

    def render(self, outcome: ExecutionOutcome, output_format: OutputFormat) -> None:
        if isinstance(outcome, Failure):
            self.render_failure(outcome)
        elif isinstance(outcome, Ack):
            self._render_ack(outcome, output_format)
        elif isinstance(outcome, Rows):
            self._render_rows(outcome.result, output_format)
        else:
            raise TypeError(f"Cannot render {outcome!r}")

    def render_failure(self, failure: Failure) -> None:
        self.err_console.print(
            Text(f"Error ({failure.kind.value}): {failure.message}", style="bold red")
        )

    def _render_ack(self, ack: Ack, output_format: OutputFormat) -> None:
        if output_format is OutputFormat.JSON:
            payload = {"status": "ok", "message": ack.description}
            self._write([json.dumps(payload, ensure_ascii=False), "\n"])
            return
        self.console.print(Text(f"OK: {ack.description}", style="green"))

    def _render_rows(self, result: ResultSet, output_format: OutputFormat) -> None:
        if output_format is OutputFormat.JSON:
            try:
                self._write(iter_json(result))
            finally:
                self._write(["\n"])
        elif output_format is OutputFormat.CSV:
            self._write(iter_csv(result))
        else:
            table, count = build_table(result)
            self.console.print(table)
            self.console.print(Text(_row_count(count), style="dim"))

    def _write(self, chunks: Iterable[str]) -> None:
        # JSON and CSV bypass rich so tabs and carriage returns survive.
        out = self.console.file
        for chunk in chunks:
            out.write(chunk)
            out.flush()
