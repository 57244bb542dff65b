"""Scripted driver used in place of a real cluster."""

import threading
from dataclasses import dataclass
from typing import Optional

from cqlcli.db.errors import DriverConnectionError
from cqlcli.db.types import Ack, Column, HostAddress, ResultSet, Rows


@dataclass
class FakeHandle:
    host: HostAddress
    keyspace: Optional[str] = None


class FakeDriver:
    """Scripted driver: per-host reachability and per-statement responses."""

    name = "fake"

    def __init__(self, unreachable=()):
        self.unreachable = set(unreachable)
        self.down = set()
        self.responses = {}
        self.blocking = {}
        self.connect_calls = []
        self.submissions = []
        self.closed = []

    def respond(self, statement, response):
        """Register an outcome, an exception, or a callable producing either."""
        self.responses[statement] = response

    def block(self, statement):
        """Make ``statement`` hang until the returned event is set."""
        release = threading.Event()
        self.blocking[statement] = release
        return release

    def connect(self, host, credentials=None, tls=None):
        self.connect_calls.append(host)
        if host in self.unreachable:
            raise DriverConnectionError(f"{host} is unreachable")
        return FakeHandle(host)

    def submit(self, handle, statement, keyspace=None):
        self.submissions.append((handle.host, statement, keyspace))
        if handle.host in self.unreachable or handle.host in self.down:
            raise DriverConnectionError(f"{handle.host} is down")
        release = self.blocking.get(statement)
        if release is not None:
            release.wait(5)
        response = self.responses.get(statement, Ack("Query OK"))
        if callable(response):
            response = response()
        if isinstance(response, Exception):
            raise response
        handle.keyspace = keyspace
        return response

    def close(self, handle):
        self.closed.append(handle.host)

    def attempted_hosts(self):
        return [host for host, _, _ in self.submissions]


def make_rows(columns, rows):
    """Build a fresh Rows outcome from column names and plain values."""
    return Rows(ResultSet([Column(name) for name in columns], rows))

