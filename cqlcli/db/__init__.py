"""Driver and cluster session package."""

from cqlcli.db.base import Driver
from cqlcli.db.cluster import CancellationToken, ClusterSession
from cqlcli.db.factory import create_driver

__all__ = ["CancellationToken", "ClusterSession", "Driver", "create_driver"]
