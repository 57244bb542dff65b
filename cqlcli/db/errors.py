"""Exception hierarchy for cqlcli."""

from cqlcli.db.types import ErrorKind, Failure


class CqlCliError(Exception):
    """Base error carrying the kind reported to the user."""

    kind = ErrorKind.STATEMENT
    retriable = False

    def to_failure(self) -> Failure:
        return Failure(self.kind, str(self), retriable=self.retriable)


class ClusterConnectionError(CqlCliError):
    kind = ErrorKind.CONNECTION


class IncompleteStatementError(CqlCliError):
    kind = ErrorKind.INCOMPLETE_STATEMENT


class ExecutionCancelled(CqlCliError):
    kind = ErrorKind.CANCELLED

    def __init__(self, message: str = "Statement cancelled"):
        super().__init__(message)


class DriverError(CqlCliError):
    """Raised by driver implementations."""


class DriverConnectionError(DriverError):
    """Host unreachable, handshake or transport failure. Triggers failover."""

    kind = ErrorKind.CONNECTION
    retriable = True


class DriverStatementError(DriverError):
    """Server rejected or failed the statement. Never retried on another host."""

    kind = ErrorKind.STATEMENT

    def __init__(self, message: str, retriable: bool = False):
        super().__init__(message)
        self.retriable = retriable
