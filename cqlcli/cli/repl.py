"""Interactive loop and batch execution."""

import logging
import re
import signal
import threading
from contextlib import contextmanager
from typing import Callable, Iterable, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory, InMemoryHistory

from cqlcli.cli.accumulator import LogicalUnit, Statement, StatementAccumulator
from cqlcli.cli.commands import LocalEffect, dispatch
from cqlcli.cli.completion import CqlCompleter
from cqlcli.cli.render import ResultRenderer
from cqlcli.cli.session_state import CONTINUATION_PROMPT, SessionState
from cqlcli.db.cluster import CancellationToken, ClusterSession
from cqlcli.db.errors import CqlCliError, IncompleteStatementError
from cqlcli.db.types import Failure

logger = logging.getLogger(__name__)

HELP = """\
[bold cyan]Commands[/bold cyan]
  [green]quit, exit[/green]        Exit the shell
  [green]help[/green]              Show this help message
  [green]clear[/green]             Clear the screen
  [green]\\format <fmt>[/green]     Change output format (table, json, csv)
  [green]\\dk[/green]               List all keyspaces
  [green]\\dt \\[keyspace][/green]    List tables in a keyspace
  [green]\\refresh[/green]          Reload keyspace and table names for completion

[bold cyan]CQL[/bold cyan]
  Statements end with [yellow];[/yellow] and may span several lines.
  Press TAB to complete keywords, keyspaces and tables.
  Ctrl+C cancels a running statement, Ctrl+D exits.

[dim]Examples:
  SELECT * FROM system.local;
  USE my_keyspace;
  DESCRIBE KEYSPACES;[/dim]
"""

_SCHEMA_CHANGE = re.compile(r"^\s*(create|drop|alter)\b", re.IGNORECASE)

LineReader = Callable[[str], str]


@contextmanager
def cancel_on_interrupt(token: CancellationToken):
    """Route Ctrl+C to ``token`` while a statement runs."""
    if threading.current_thread() is not threading.main_thread():
        yield token
        return

    def handler(signum, frame):
        token.cancel()

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield token
    finally:
        signal.signal(signal.SIGINT, previous)


def execute_unit(
    unit: LogicalUnit,
    state: SessionState,
    session: ClusterSession,
    renderer: ResultRenderer,
    token: Optional[CancellationToken] = None,
):
    """Dispatch one unit and render its outcome.

    Returns the LocalEffect for the caller to act on, otherwise the outcome
    that was rendered. Errors raised while rows stream in are rendered as
    failures too.
    """
    if token is None:
        token = CancellationToken()
    result = dispatch(unit, state, session, token)
    if isinstance(result, LocalEffect):
        return result
    try:
        renderer.render(result, state.output_format)
    except CqlCliError as exc:
        logger.debug("Failed while streaming rows: %s", exc)
        result = exc.to_failure()
        renderer.render_failure(result)
    return result


def run_batch(
    lines: Iterable[str],
    session: ClusterSession,
    state: SessionState,
    renderer: ResultRenderer,
    fail_fast: bool = True,
) -> bool:
    """Run every statement in ``lines`` in order. Returns True if all succeeded.

    With ``fail_fast`` the run stops at the first failure. ``quit`` ends the
    batch early; other local effects are ignored.
    """
    accumulator = StatementAccumulator()
    ok = True
    for line in lines:
        for unit in accumulator.feed(line.rstrip("\r\n")):
            result = execute_unit(unit, state, session, renderer)
            if result is LocalEffect.TERMINATE:
                return ok
            if isinstance(result, Failure):
                ok = False
                if fail_fast:
                    return False
    try:
        accumulator.finish()
    except IncompleteStatementError as exc:
        renderer.render_failure(exc.to_failure())
        return False
    return ok


class Repl:
    """Interactive read-dispatch-render loop."""

    def __init__(
        self,
        session: ClusterSession,
        state: SessionState,
        renderer: Optional[ResultRenderer] = None,
        reader: Optional[LineReader] = None,
        completer: Optional[CqlCompleter] = None,
        history_file: Optional[str] = None,
    ):
        self.session = session
        self.state = state
        self.renderer = renderer or ResultRenderer()
        self.console = self.renderer.console
        self.completer = completer
        self.accumulator = StatementAccumulator()
        self._reader = reader or self._prompt_toolkit_reader(history_file)

    def _prompt_toolkit_reader(self, history_file: Optional[str]) -> LineReader:
        if self.completer is None:
            self.completer = CqlCompleter()
        history = FileHistory(history_file) if history_file else InMemoryHistory()
        prompt_session = PromptSession(
            history=history,
            completer=self.completer,
            complete_while_typing=False,
        )
        return prompt_session.prompt

    def run(self) -> None:
        self.console.print("[bold cyan]=== cqlcli ===[/bold cyan]")
        self.console.print(
            "[dim]Type 'help' for available commands, 'quit' or 'exit' to exit.[/dim]"
        )
        self._refresh_schema()

        while True:
            prompt = CONTINUATION_PROMPT if self.accumulator.pending else self.state.prompt()
            try:
                line = self._reader(prompt)
            except KeyboardInterrupt:
                self.accumulator.reset()
                continue
            except EOFError:
                break
            if not self._handle_line(line):
                break
        self.console.print("[cyan]Goodbye![/cyan]")

    def _handle_line(self, line: str) -> bool:
        for unit in self.accumulator.feed(line):
            if not self.run_unit(unit):
                return False
        return True

    def run_unit(self, unit: LogicalUnit) -> bool:
        """Execute one unit. Returns False when the loop should stop."""
        token = CancellationToken()
        with cancel_on_interrupt(token):
            result = execute_unit(
                unit, self.state, self.session, self.renderer, token
            )

        if result is LocalEffect.TERMINATE:
            return False
        if result is LocalEffect.CLEAR_SCREEN:
            self.console.clear()
        elif result is LocalEffect.SHOW_HELP:
            self.console.print(HELP)
        elif result is LocalEffect.REFRESH_SCHEMA:
            if self._refresh_schema():
                self.console.print("[green]Schema refreshed.[/green]")
            else:
                self.renderer.render_failure(
                    CqlCliError("Schema refresh failed").to_failure()
                )
        elif isinstance(unit, Statement) and not isinstance(result, Failure):
            if _SCHEMA_CHANGE.match(unit.text):
                self._refresh_schema()
        return True

    def _refresh_schema(self) -> bool:
        if self.completer is None:
            return True
        return self.completer.refresh(self.session)
