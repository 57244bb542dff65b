"""cqlcli - interactive and batch shell for Cassandra-compatible clusters."""

import re
from typing import Any, Dict, List, Optional, Tuple

import click
from rich.console import Console
from rich.markup import escape

from cqlcli import __version__
from cqlcli.cli.accumulator import Statement
from cqlcli.cli.commands import dispatch, quote_literal
from cqlcli.cli.render import ResultRenderer
from cqlcli.cli.repl import Repl, run_batch
from cqlcli.cli.session_state import SessionState
from cqlcli.config.log import configure_logging
from cqlcli.config.settings import ClusterSettings, get_settings
from cqlcli.db.cluster import ClusterSession
from cqlcli.db.errors import ClusterConnectionError
from cqlcli.db.factory import create_driver
from cqlcli.db.types import Failure

console = Console()
err_console = Console(stderr=True)

_BARE_IDENTIFIER = re.compile(r"^[a-z][a-z0-9_]*$")


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="cqlcli")
@click.option("-H", "--hosts", help="Comma separated hosts, host or host:port.")
@click.option("-p", "--port", type=int, help="Default port for hosts without one.")
@click.option("-u", "--username", help="Username for authentication.")
@click.option(
    "-P", "--password-prompt", is_flag=True, help="Prompt for the password."
)
@click.option("--password", help="Password for authentication.")
@click.option("-k", "--keyspace", help="Keyspace to use after connecting.")
@click.option("-e", "--execute", "execute", help="Execute a statement and exit.")
@click.option(
    "-f",
    "--file",
    "file",
    type=click.Path(exists=True, dir_okay=False),
    help="Execute the statements in a file and exit.",
)
@click.option(
    "-o",
    "--output-format",
    type=click.Choice(["table", "json", "csv"], case_sensitive=False),
    help="Output format.",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option("--ssl/--no-ssl", default=None, help="Use TLS.")
@click.option("--ssl-ca-cert", type=click.Path(dir_okay=False), help="CA certificate.")
@click.option(
    "--ssl-verify/--no-ssl-verify",
    default=None,
    help="Verify the server certificate.",
)
@click.option(
    "--continue-on-error",
    is_flag=True,
    help="Keep running a batch after a failed statement.",
)
@click.pass_context
def cli(ctx: click.Context, **options: Any) -> None:
    """cqlcli - run CQL against a Cassandra-compatible cluster."""
    configure_logging(options["verbose"])
    ctx.obj = options
    if ctx.invoked_subcommand is None:
        ctx.invoke(repl)


@cli.command()
@click.pass_context
def repl(ctx: click.Context) -> None:
    """Start the interactive shell (default), or run -e / -f in batch."""
    options = ctx.obj
    settings = _load_settings(options)
    script = None
    if options["file"] and not options["execute"]:
        script = _read_script(options["file"])
    session, state = _open_session(settings)
    renderer = ResultRenderer(console=console, err_console=err_console)
    fail_fast = not options["continue_on_error"]
    try:
        if options["execute"]:
            ok = run_batch(
                [_terminated(options["execute"])], session, state, renderer, fail_fast
            )
        elif script is not None:
            ok = run_batch(script, session, state, renderer, fail_fast)
        else:
            Repl(
                session, state, renderer, history_file=settings.history_file
            ).run()
            ok = True
    finally:
        session.close()
    if not ok and fail_fast:
        raise SystemExit(1)


@cli.command()
@click.argument("target", nargs=-1, required=True)
@click.pass_context
def describe(ctx: click.Context, target: Tuple[str, ...]) -> None:
    """Describe cluster, keyspaces, keyspace NAME, table NAME or tables KEYSPACE."""
    query = describe_query(target)
    if query is None:
        console.print(
            "Usage: describe [cluster|keyspaces|keyspace NAME|table NAME|tables KEYSPACE]",
            markup=False,
        )
        return
    options = ctx.obj
    session, state = _open_session(_load_settings(options))
    renderer = ResultRenderer(console=console, err_console=err_console)
    try:
        ok = run_batch([query], session, state, renderer)
    finally:
        session.close()
    if not ok:
        raise SystemExit(1)


@cli.command("test-connection")
@click.pass_context
def test_connection(ctx: click.Context) -> None:
    """Connect to every configured host and report which ones answer."""
    options = ctx.obj
    settings = _load_settings(options)
    session, _ = _open_session(settings)
    try:
        healthy = set(session.healthy_hosts())
        for host in session.hosts:
            if host in healthy:
                console.print(f"[green]{host}: connected[/green]")
            else:
                console.print(f"[red]{host}: unreachable[/red]")
    finally:
        session.close()
    console.print(
        f"[green]Connected to {len(healthy)} of {len(settings.hosts)} host(s).[/green]"
    )


def describe_query(target: Tuple[str, ...]) -> Optional[str]:
    kind = target[0].lower() if target else ""
    if kind == "cluster":
        return "SELECT * FROM system.local;"
    if kind == "keyspaces":
        return "SELECT keyspace_name FROM system_schema.keyspaces;"
    if kind == "keyspace" and len(target) > 1:
        return (
            "SELECT * FROM system_schema.keyspaces WHERE keyspace_name = "
            f"{quote_literal(target[1])};"
        )
    if kind == "table" and len(target) > 1:
        return (
            "SELECT * FROM system_schema.columns WHERE table_name = "
            f"{quote_literal(target[1])} ALLOW FILTERING;"
        )
    if kind == "tables" and len(target) > 1:
        return (
            "SELECT table_name FROM system_schema.tables WHERE keyspace_name = "
            f"{quote_literal(target[1])};"
        )
    return None


def use_statement(keyspace: str) -> str:
    if _BARE_IDENTIFIER.match(keyspace):
        return f"USE {keyspace};"
    escaped = keyspace.replace('"', '""')
    return f'USE "{escaped}";'


def _terminated(text: str) -> str:
    stripped = text.strip()
    return stripped if stripped.endswith(";") else stripped + ";"


def _read_script(path: str) -> List[str]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            return handle.readlines()
    except UnicodeDecodeError as exc:
        err_console.print(
            f"[red]Cannot read {escape(path)}:[/red] not valid UTF-8 "
            f"(byte {exc.start})"
        )
        raise SystemExit(1)
    except OSError as exc:
        err_console.print(f"[red]Cannot read {escape(path)}:[/red] {escape(str(exc))}")
        raise SystemExit(1)


def _load_settings(options: Dict[str, Any]) -> ClusterSettings:
    try:
        settings = get_settings()
    except ValueError as exc:
        err_console.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
        raise SystemExit(1)

    overrides = {
        "hosts_text": options["hosts"],
        "port": options["port"],
        "username": options["username"],
        "password": options["password"],
        "keyspace": options["keyspace"],
        "output_format": options["output_format"],
        "ssl": options["ssl"],
        "ssl_ca_cert": options["ssl_ca_cert"],
        "ssl_verify": options["ssl_verify"],
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(settings, name, value)
    if settings.output_format:
        settings.output_format = settings.output_format.lower()

    if options["password_prompt"]:
        if settings.username:
            settings.password = click.prompt("Password", hide_input=True)
        else:
            err_console.print(
                "[yellow]Warning: password prompt requested but no username given.[/yellow]"
            )
    return settings


def _open_session(settings: ClusterSettings) -> Tuple[ClusterSession, SessionState]:
    try:
        state = SessionState.from_settings(settings)
        driver = create_driver(settings)
    except ValueError as exc:
        err_console.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
        raise SystemExit(1)

    session = ClusterSession(driver)
    try:
        with console.status("Connecting..."):
            session.connect(state.hosts, state.credentials, state.tls)
    except ClusterConnectionError as exc:
        err_console.print(f"[red]Connection failed:[/red] {escape(str(exc))}")
        raise SystemExit(1)

    if settings.keyspace:
        outcome = dispatch(Statement(use_statement(settings.keyspace)), state, session)
        if isinstance(outcome, Failure):
            keyspace = escape(settings.keyspace)
            err_console.print(
                f"[red]Cannot use keyspace {keyspace}:[/red] {escape(outcome.message)}"
            )
            session.close()
            raise SystemExit(1)
    return session, state


if __name__ == "__main__":
    cli()
