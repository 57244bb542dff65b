"""Turns input lines into meta-commands and terminated statements."""

from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple, Union

from cqlcli.db.errors import IncompleteStatementError

META_PREFIX = "\\"
SYSTEM_KEYWORDS = frozenset({"help", "quit", "exit", "clear"})


@dataclass(frozen=True)
class MetaCommand:
    name: str
    args: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Statement:
    text: str


LogicalUnit = Union[MetaCommand, Statement]


def parse_meta_command(line: str) -> Optional[MetaCommand]:
    """Return the meta-command on ``line``, or None for ordinary input."""
    text = line.strip()
    while text.endswith(";"):
        text = text[:-1].rstrip()
    if not text:
        return None
    if text.lower() in SYSTEM_KEYWORDS:
        return MetaCommand(text.lower())
    if text.startswith(META_PREFIX):
        parts = text.split()
        return MetaCommand(parts[0].lower(), tuple(parts[1:]))
    return None


def _segments(text: str) -> Iterator[Tuple[str, int, int]]:
    """Split ``text`` into ``(kind, start, end)`` spans.

    Kinds are ``code``, ``literal`` (``'...'`` strings, ``"..."``
    identifiers, ``$$...$$``), ``comment`` (``--``, ``//`` and ``/* */``)
    and ``open`` for a literal or block comment still unclosed at the end.
    A doubled quote inside a string closes one literal and opens the next,
    which yields the same split as treating it as an escape.
    """
    i = 0
    code_start = 0
    length = len(text)
    while i < length:
        ch = text[i]
        pair = text[i : i + 2]
        if pair == "$$":
            kind, closer, end = "literal", "$$", text.find("$$", i + 2)
        elif ch in ("'", '"'):
            kind, closer, end = "literal", ch, text.find(ch, i + 1)
        elif pair in ("--", "//"):
            kind, closer, end = "comment", "", text.find("\n", i + 2)
            if end == -1:
                end = length
        elif pair == "/*":
            kind, closer, end = "comment", "*/", text.find("*/", i + 2)
        else:
            i += 1
            continue
        if i > code_start:
            yield "code", code_start, i
        if end == -1:
            yield "open", i, length
            return
        stop = end + len(closer)
        yield kind, i, stop
        i = code_start = stop
    if code_start < length:
        yield "code", code_start, length


def find_terminator(text: str) -> int:
    """Index of the first ``;`` outside literals and comments, or -1."""
    for kind, start, end in _segments(text):
        if kind == "code":
            index = text.find(";", start, end)
            if index != -1:
                return index
    return -1


def strip_comments(text: str) -> str:
    return "".join(
        " " if kind == "comment" else text[start:end]
        for kind, start, end in _segments(text)
    )


class StatementAccumulator:
    """Buffers input until it holds complete logical units.

    ``feed`` takes one line and returns the units it completed, which is an
    empty list while a statement is still open. Several statements on one
    line come back together; text after the last terminator stays buffered
    as the start of the next statement.
    """

    def __init__(self):
        self._buffer = ""

    @property
    def pending(self) -> bool:
        """True while a partial statement is buffered."""
        return bool(strip_comments(self._buffer).strip())

    def feed(self, line: str) -> List[LogicalUnit]:
        if not self.pending:
            self._buffer = ""
            if not line.strip():
                return []
            command = parse_meta_command(line)
            if command is not None:
                return [command]
            self._buffer = line
        else:
            self._buffer = f"{self._buffer}\n{line}"
        return self._drain()

    def reset(self) -> None:
        self._buffer = ""

    def finish(self) -> None:
        """Signal end of input. Raises if a statement was left open."""
        if self.pending:
            text = self._buffer.strip()
            self._buffer = ""
            raise IncompleteStatementError(
                f"Statement is missing a terminating ';': {text}"
            )

    def _drain(self) -> List[LogicalUnit]:
        units: List[LogicalUnit] = []
        while True:
            end = find_terminator(self._buffer)
            if end == -1:
                break
            text = self._buffer[: end + 1].strip()
            self._buffer = self._buffer[end + 1 :]
            if strip_comments(text).strip() != ";":
                units.append(Statement(text))
        if not self.pending:
            self._buffer = ""
        return units
