"""Pytest configuration and fixtures."""

import io

import pytest
from rich.console import Console

from cqlcli.cli.render import ResultRenderer
from cqlcli.cli.session_state import SessionState
from cqlcli.config import settings as settings_module
from cqlcli.db.cluster import ClusterSession
from cqlcli.db.types import HostAddress
from tests.fakes import FakeDriver


@pytest.fixture
def hosts():
    return [
        HostAddress("10.0.0.1"),
        HostAddress("10.0.0.2"),
        HostAddress("10.0.0.3"),
    ]


@pytest.fixture
def driver():
    return FakeDriver()


@pytest.fixture
def session(driver, hosts):
    cluster = ClusterSession(driver, poll_interval=0.01)
    cluster.connect(hosts)
    yield cluster
    cluster.close()


@pytest.fixture
def state(hosts):
    return SessionState(hosts=list(hosts))


@pytest.fixture
def consoles():
    out = Console(file=io.StringIO(), width=200, color_system=None)
    err = Console(file=io.StringIO(), width=200, color_system=None)
    return out, err


@pytest.fixture
def renderer(consoles):
    out, err = consoles
    return ResultRenderer(console=out, err_console=err)


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch):
    """Keep the settings singleton and CQL_* variables out of other tests."""
    for name in (
        "CQL_HOSTS",
        "CQL_PORT",
        "CQL_USERNAME",
        "CQL_PASSWORD",
        "CQL_KEYSPACE",
        "CQL_OUTPUT_FORMAT",
        "CQL_SSL",
        "CQL_SSL_CA_CERT",
        "CQL_SSL_VERIFY",
        "CQL_CONNECT_TIMEOUT",
        "CQL_REQUEST_TIMEOUT",
        "CQL_FETCH_SIZE",
        "CQL_HISTORY_FILE",
        "CQL_DRIVER",
    ):
        monkeypatch.delenv(name, raising=False)
    settings_module.reset_settings()
    yield
    settings_module.reset_settings()
