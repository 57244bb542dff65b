"""Routing of logical units to local effects or cluster execution."""

import enum
import logging
import re
from typing import Callable, Dict, Optional, Union

from cqlcli.cli.accumulator import LogicalUnit, MetaCommand, Statement
from cqlcli.cli.session_state import OutputFormat, SessionState
from cqlcli.db.cluster import CancellationToken, ClusterSession
from cqlcli.db.types import Ack, ErrorKind, ExecutionOutcome, Failure

logger = logging.getLogger(__name__)

LIST_KEYSPACES = "SELECT keyspace_name FROM system_schema.keyspaces;"
LIST_TABLES = (
    "SELECT table_name FROM system_schema.tables WHERE keyspace_name = {keyspace};"
)

_USE_PATTERN = re.compile(
    r'^\s*use\s+(?:"((?:[^"]|"")+)"|([A-Za-z0-9_]+))\s*;?\s*$',
    re.IGNORECASE | re.DOTALL,
)


class LocalEffect(enum.Enum):
    TERMINATE = "terminate"
    CLEAR_SCREEN = "clear_screen"
    SHOW_HELP = "show_help"
    REFRESH_SCHEMA = "refresh_schema"


DispatchResult = Union[ExecutionOutcome, LocalEffect]


def dispatch(
    unit: LogicalUnit,
    state: SessionState,
    session: ClusterSession,
    token: Optional[CancellationToken] = None,
) -> DispatchResult:
    """Route one logical unit. Performs no retries and no formatting."""
    if isinstance(unit, MetaCommand):
        handler = META_COMMANDS.get(unit.name)
        if handler is None:
            return Failure(
                ErrorKind.INVALID_ARGUMENT,
                f"Unknown command: {unit.name}. Type 'help' for available commands.",
            )
        return handler(unit, state, session, token)
    if isinstance(unit, Statement):
        keyspace = parse_use_keyspace(unit.text)
        if keyspace is not None:
            return _use_keyspace(unit.text, keyspace, state, session, token)
        return session.execute(unit.text, state.active_keyspace, token)
    raise TypeError(f"Unsupported logical unit: {unit!r}")


def parse_use_keyspace(text: str) -> Optional[str]:
    """Keyspace named by a ``USE`` statement, or None for other statements.

    Quoted names keep their case; unquoted names are case-insensitive and
    are lower-cased the way the server does.
    """
    match = _USE_PATTERN.match(text)
    if match is None:
        return None
    quoted, bare = match.groups()
    if quoted is not None:
        return quoted.replace('""', '"')
    return bare.lower()


def quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _use_keyspace(text, keyspace, state, session, token) -> ExecutionOutcome:
    outcome = session.execute(text, state.active_keyspace, token)
    if isinstance(outcome, Failure):
        return outcome
    state.active_keyspace = keyspace
    logger.info("Active keyspace is now %s", keyspace)
    return Ack(f"Now using keyspace {keyspace}")


def _terminate(unit, state, session, token) -> LocalEffect:
    return LocalEffect.TERMINATE


def _clear(unit, state, session, token) -> LocalEffect:
    return LocalEffect.CLEAR_SCREEN


def _help(unit, state, session, token) -> LocalEffect:
    return LocalEffect.SHOW_HELP


def _refresh(unit, state, session, token) -> LocalEffect:
    return LocalEffect.REFRESH_SCHEMA


def _set_format(unit, state, session, token) -> ExecutionOutcome:
    if len(unit.args) != 1:
        return Failure(ErrorKind.INVALID_ARGUMENT, "Usage: \\format <table|json|csv>")
    try:
        output_format = OutputFormat.parse(unit.args[0])
    except ValueError as exc:
        return Failure(ErrorKind.INVALID_ARGUMENT, str(exc))
    state.output_format = output_format
    return Ack(f"Output format set to {output_format.value}")


def _list_keyspaces(unit, state, session, token) -> ExecutionOutcome:
    return session.execute(LIST_KEYSPACES, state.active_keyspace, token)


def _list_tables(unit, state, session, token) -> ExecutionOutcome:
    if len(unit.args) > 1:
        return Failure(ErrorKind.INVALID_ARGUMENT, "Usage: \\dt [keyspace]")
    keyspace = unit.args[0] if unit.args else state.active_keyspace
    if not keyspace:
        return Failure(
            ErrorKind.NO_KEYSPACE_SELECTED,
            "No keyspace selected. Use \\dt <keyspace> or USE <keyspace>; first.",
        )
    statement = LIST_TABLES.format(keyspace=quote_literal(keyspace))
    return session.execute(statement, state.active_keyspace, token)


MetaHandler = Callable[..., DispatchResult]

META_COMMANDS: Dict[str, MetaHandler] = {
    "quit": _terminate,
    "exit": _terminate,
    "clear": _clear,
    "help": _help,
    "\\format": _set_format,
    "\\dk": _list_keyspaces,
    "\\dt": _list_tables,
    "\\refresh": _refresh,
}
