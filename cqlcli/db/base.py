"""Driver collaborator interface."""

from typing import Any, Optional, Protocol, Union, runtime_checkable

from cqlcli.db.types import Ack, Credentials, HostAddress, Rows, TLSConfig


@runtime_checkable
class Driver(Protocol):
    """What ClusterSession needs from a wire-protocol driver.

    ``connect`` opens a handle pinned to a single host and raises
    ``DriverConnectionError`` when the host cannot be reached. ``submit``
    runs one statement on that handle with ``keyspace`` as the session
    keyspace and raises ``DriverConnectionError`` for transport failures or
    ``DriverStatementError`` for anything the server reports. Handles are
    treated as opaque and may be shared with the driver's own background
    reconnection machinery.
    """

    name: str

    def connect(
        self,
        host: HostAddress,
        credentials: Optional[Credentials] = None,
        tls: Optional[TLSConfig] = None,
    ) -> Any: ...

    def submit(
        self, handle: Any, statement: str, keyspace: Optional[str] = None
    ) -> Union[Rows, Ack]: ...

    def close(self, handle: Any) -> None: ...
