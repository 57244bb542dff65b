"""Cassandra driver implementation."""

import logging
import ssl
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Union

from cassandra import (
    OperationTimedOut,
    RequestExecutionException,
    RequestValidationException,
    DriverException,
)
from cassandra.auth import PlainTextAuthProvider
from cassandra.cluster import (
    EXEC_PROFILE_DEFAULT,
    Cluster,
    ExecutionProfile,
    NoHostAvailable,
    Session,
)
from cassandra.connection import ConnectionException
from cassandra.policies import WhiteListRoundRobinPolicy
from cassandra.protocol import ErrorMessage
from cassandra.query import SimpleStatement, tuple_factory
from cassandra.util import Date, Duration, SortedSet, Time

from cqlcli.db.errors import DriverConnectionError, DriverStatementError
from cqlcli.db.types import (
    Ack,
    Cell,
    CellKind,
    Column,
    Credentials,
    HostAddress,
    ResultSet,
    Rows,
    TLSConfig,
)

logger = logging.getLogger(__name__)

_CONNECTION_ERRORS = (NoHostAvailable, OperationTimedOut, ConnectionException)
_STATEMENT_ERRORS = (
    ErrorMessage,
    RequestValidationException,
    RequestExecutionException,
    DriverException,
)


@dataclass
class CassandraConnection:
    host: HostAddress
    cluster: Cluster
    session: Session


class CassandraDriver:
    name = "cassandra"

    def __init__(
        self,
        connect_timeout: float = 5.0,
        request_timeout: float = 10.0,
        fetch_size: int = 100,
    ):
        self.connect_timeout = connect_timeout
        self.request_timeout = request_timeout
        self.fetch_size = fetch_size

    def connect(
        self,
        host: HostAddress,
        credentials: Optional[Credentials] = None,
        tls: Optional[TLSConfig] = None,
    ) -> CassandraConnection:
        profile = ExecutionProfile(
            load_balancing_policy=WhiteListRoundRobinPolicy([host.address]),
            request_timeout=self.request_timeout,
            row_factory=tuple_factory,
        )
        options: Dict[str, Any] = {
            "contact_points": [host.address],
            "port": host.port,
            "execution_profiles": {EXEC_PROFILE_DEFAULT: profile},
            "connect_timeout": self.connect_timeout,
        }
        if credentials is not None:
            logger.info("Using authentication with username: %s", credentials.username)
            options["auth_provider"] = PlainTextAuthProvider(
                username=credentials.username, password=credentials.password
            )
        if tls is not None and tls.enabled:
            options["ssl_context"] = create_ssl_context(tls)

        cluster = Cluster(**options)
        try:
            session = cluster.connect()
        except _CONNECTION_ERRORS as exc:
            cluster.shutdown()
            raise DriverConnectionError(f"Failed to connect to {host}: {exc}") from exc
        except DriverException as exc:
            cluster.shutdown()
            raise DriverConnectionError(f"Failed to connect to {host}: {exc}") from exc
        return CassandraConnection(host=host, cluster=cluster, session=session)

    def submit(
        self,
        handle: CassandraConnection,
        statement: str,
        keyspace: Optional[str] = None,
    ) -> Union[Rows, Ack]:
        session = handle.session
        try:
            if keyspace and session.keyspace != keyspace:
                session.set_keyspace(keyspace)
            result = session.execute(
                SimpleStatement(statement, fetch_size=self.fetch_size)
            )
        except _CONNECTION_ERRORS as exc:
            raise DriverConnectionError(f"{handle.host}: {exc}") from exc
        except RequestExecutionException as exc:
            raise DriverStatementError(str(exc), retriable=True) from exc
        except _STATEMENT_ERRORS as exc:
            raise DriverStatementError(str(exc)) from exc

        if not result.column_names:
            return Ack("Query OK")
        types = result.column_types or [None] * len(result.column_names)
        columns = [
            Column(name) if cql_type is None else Column(name, _type_name(cql_type))
            for name, cql_type in zip(result.column_names, types)
        ]
        return Rows(ResultSet(columns, _iter_rows(result, handle.host)))

    def close(self, handle: CassandraConnection) -> None:
        handle.cluster.shutdown()


def create_ssl_context(tls: TLSConfig) -> ssl.SSLContext:
    context = ssl.create_default_context(cafile=tls.ca_cert)
    if tls.verify:
        logger.info("SSL certificate verification enabled")
        context.check_hostname = True
        context.verify_mode = ssl.CERT_REQUIRED
    else:
        logger.info("SSL certificate verification disabled")
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def _type_name(cql_type: Any) -> str:
    parameterized = getattr(cql_type, "cql_parameterized_type", None)
    if parameterized is not None:
        return parameterized()
    return str(cql_type)


def _iter_rows(result: Any, host: HostAddress) -> Iterator[tuple]:
    # Pages past the first are fetched while iterating.
    try:
        for row in result:
            yield tuple(to_cell(value) for value in row)
    except _CONNECTION_ERRORS as exc:
        raise DriverConnectionError(f"{host}: {exc}") from exc
    except _STATEMENT_ERRORS as exc:
        raise DriverStatementError(str(exc)) from exc


def to_cell(value: Any) -> Cell:
    """Convert a value returned by cassandra-driver into a Cell."""
    if isinstance(value, SortedSet):
        return Cell(CellKind.SET, tuple(to_cell(v) for v in value))
    if isinstance(value, Mapping):
        return Cell(
            CellKind.MAP, tuple((to_cell(k), to_cell(v)) for k, v in value.items())
        )
    if isinstance(value, tuple) and hasattr(value, "_fields"):
        return Cell(
            CellKind.MAP,
            tuple((Cell.of(k), to_cell(v)) for k, v in zip(value._fields, value)),
        )
    if isinstance(value, tuple):
        return Cell(CellKind.TUPLE, tuple(to_cell(v) for v in value))
    if isinstance(value, list):
        return Cell(CellKind.LIST, tuple(to_cell(v) for v in value))
    if isinstance(value, (set, frozenset)):
        return Cell.of(value)
    if isinstance(value, Time):
        return Cell(CellKind.TIME, value)
    if isinstance(value, Date):
        # out of range for datetime.date
        return Cell(CellKind.DATE, value)
    if isinstance(value, Duration):
        return Cell(CellKind.DURATION, value)
    return Cell.of(value)
