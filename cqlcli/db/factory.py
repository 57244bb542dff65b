"""Driver factory."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cqlcli.config.settings import ClusterSettings


def create_driver(settings: "ClusterSettings"):
    if settings.driver == "cassandra":
        from cqlcli.db.cassandra_adapter import CassandraDriver

        return CassandraDriver(
            connect_timeout=settings.connect_timeout,
            request_timeout=settings.request_timeout,
            fetch_size=settings.fetch_size,
        )
    raise ValueError(f"Unsupported CQL_DRIVER: {settings.driver}")
