"""Connection and client configuration for cqlcli."""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from cqlcli.db.types import Credentials, HostAddress, TLSConfig

# Load environment variables
load_dotenv()

DEFAULT_PORT = 9042
OUTPUT_FORMATS = ("table", "json", "csv")
_TRUE_VALUES = {"1", "true", "yes", "on"}


def parse_hosts(value: str, default_port: int = DEFAULT_PORT) -> List[HostAddress]:
    """Parse ``host[,host:port,[v6]:port]`` into host addresses."""
    hosts: List[HostAddress] = []
    for raw in value.split(","):
        item = raw.strip()
        if not item:
            continue
        address, port = item, default_port
        if item.startswith("["):
            end = item.find("]")
            if end == -1:
                raise ValueError(f"Invalid host: {item}")
            address = item[1:end]
            rest = item[end + 1 :]
            if rest:
                if not rest.startswith(":"):
                    raise ValueError(f"Invalid host: {item}")
                port = _parse_port(rest[1:], item)
        elif item.count(":") == 1:
            address, port_text = item.split(":")
            port = _parse_port(port_text, item)
        hosts.append(HostAddress(address, port))
    if not hosts:
        raise ValueError("At least one host is required")
    return hosts


def _parse_port(text: str, item: str) -> int:
    try:
        port = int(text)
    except ValueError:
        raise ValueError(f"Invalid port in host: {item}")
    if not 0 < port < 65536:
        raise ValueError(f"Port out of range in host: {item}")
    return port


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_number(name: str, default, cast):
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return cast(value)
    except ValueError:
        raise ValueError(f"Invalid value for {name}: {value!r}")


class ClusterSettings:
    """Client settings read from environment variables."""

    def __init__(self):
        """Initialize settings from environment variables."""
        self.hosts_text = os.getenv("CQL_HOSTS", "127.0.0.1")
        self.port = _env_number("CQL_PORT", DEFAULT_PORT, int)
        self.username = os.getenv("CQL_USERNAME") or None
        self.password = os.getenv("CQL_PASSWORD") or None
        self.keyspace = os.getenv("CQL_KEYSPACE") or None
        self.output_format = os.getenv("CQL_OUTPUT_FORMAT", "table").strip().lower()
        self.ssl = _env_bool("CQL_SSL")
        self.ssl_ca_cert = os.getenv("CQL_SSL_CA_CERT") or None
        self.ssl_verify = _env_bool("CQL_SSL_VERIFY")
        self.connect_timeout = _env_number("CQL_CONNECT_TIMEOUT", 5.0, float)
        self.request_timeout = _env_number("CQL_REQUEST_TIMEOUT", 10.0, float)
        self.fetch_size = _env_number("CQL_FETCH_SIZE", 100, int)
        self.history_file = os.getenv("CQL_HISTORY_FILE") or str(
            Path.home() / ".cqlcli_history"
        )
        self.driver = os.getenv("CQL_DRIVER", "cassandra").strip().lower()

        self._validate_config()

    def _validate_config(self):
        """Validate values that would otherwise fail late."""
        if self.output_format not in OUTPUT_FORMATS:
            raise ValueError(
                f"CQL_OUTPUT_FORMAT must be one of {', '.join(OUTPUT_FORMATS)}"
            )
        if self.fetch_size <= 0:
            raise ValueError("CQL_FETCH_SIZE must be positive")
        if self.connect_timeout <= 0 or self.request_timeout <= 0:
            raise ValueError("CQL_CONNECT_TIMEOUT and CQL_REQUEST_TIMEOUT must be positive")

    @property
    def hosts(self) -> List[HostAddress]:
        return parse_hosts(self.hosts_text, self.port)

    @property
    def credentials(self) -> Optional[Credentials]:
        if not self.username:
            return None
        return Credentials(self.username, self.password or "")

    @property
    def tls(self) -> TLSConfig:
        return TLSConfig(
            enabled=self.ssl, ca_cert=self.ssl_ca_cert, verify=self.ssl_verify
        )


# Singleton instance
_settings = None


def get_settings() -> ClusterSettings:
    """Get singleton settings."""
    global _settings
    if _settings is None:
        _settings = ClusterSettings()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None
