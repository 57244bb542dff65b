"""cqlcli - interactive and batch shell for Cassandra-compatible clusters."""

__version__ = "0.1.0"
