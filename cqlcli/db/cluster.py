"""Cluster session: host health, failover and cancellable execution."""

import logging
import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Optional, Sequence

from cqlcli.db.base import Driver
from cqlcli.db.errors import (
    ClusterConnectionError,
    DriverConnectionError,
    DriverError,
    DriverStatementError,
    ExecutionCancelled,
)
from cqlcli.db.types import (
    Credentials,
    ErrorKind,
    ExecutionOutcome,
    Failure,
    HostAddress,
    ResultSet,
    Row,
    Rows,
    TLSConfig,
)

logger = logging.getLogger(__name__)

# Rows buffered ahead of the consumer while streaming.
_STREAM_BUFFER = 64
_END = object()


class CancellationToken:
    """Cooperative cancellation flag shared by the caller and the session."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise ExecutionCancelled()


@dataclass
class HostState:
    host: HostAddress
    handle: Any = None
    healthy: bool = False
    failures: int = 0
    last_failure: Optional[float] = None
    last_error: Optional[str] = None


class ClusterSession:
    """Executes statements one at a time against an ordered set of hosts.

    Healthy hosts are tried first, starting from the host that served the
    last successful statement; unhealthy hosts follow, least recently failed
    first. A connection-level failure marks the host unhealthy and moves on
    to the next candidate, so a statement is attempted at most once per
    configured host. Statement-level failures are returned as they are.
    """

    def __init__(
        self,
        driver: Driver,
        poll_interval: float = 0.05,
        max_workers: int = 4,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.driver = driver
        self.poll_interval = poll_interval
        self._clock = clock
        self._max_workers = max_workers
        self._hosts: List[HostState] = []
        self._credentials: Optional[Credentials] = None
        self._tls: Optional[TLSConfig] = None
        self._cursor = 0
        self._in_flight = threading.Lock()
        self._health_lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def hosts(self) -> List[HostAddress]:
        return [state.host for state in self._hosts]

    def healthy_hosts(self) -> List[HostAddress]:
        with self._health_lock:
            return [state.host for state in self._hosts if state.healthy]

    def host_states(self) -> List[HostState]:
        with self._health_lock:
            return list(self._hosts)

    def connect(
        self,
        hosts: Sequence[HostAddress],
        credentials: Optional[Credentials] = None,
        tls: Optional[TLSConfig] = None,
    ) -> List[HostAddress]:
        """Open a handle to every host. Fails when none is reachable."""
        if not hosts:
            raise ClusterConnectionError("No hosts configured")
        self.close()
        self._credentials = credentials
        self._tls = tls
        self._hosts = [HostState(host) for host in hosts]
        self._cursor = 0

        logger.info("Connecting to %s", ", ".join(str(h) for h in hosts))
        for state in self._hosts:
            try:
                state.handle = self.driver.connect(state.host, credentials, tls)
            except DriverConnectionError as exc:
                self._mark_failed(state, exc)
            else:
                self._mark_healthy(state)

        healthy = self.healthy_hosts()
        if not healthy:
            details = "; ".join(f"{s.host}: {s.last_error}" for s in self._hosts)
            raise ClusterConnectionError(
                f"Unable to connect to any of {len(self._hosts)} host(s): {details}"
            )
        self._cursor = next(i for i, s in enumerate(self._hosts) if s.healthy)
        logger.info("Connected to %d of %d host(s)", len(healthy), len(self._hosts))
        return healthy

    def execute(
        self,
        statement: str,
        keyspace: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> ExecutionOutcome:
        if token is None:
            token = CancellationToken()
        if not self._hosts:
            return Failure(ErrorKind.CONNECTION, "Not connected to any host")

        with self._in_flight:
            errors: List[str] = []
            for state in self._candidates():
                if token.cancelled:
                    return ExecutionCancelled().to_failure()
                logger.debug("Executing on %s: %s", state.host, statement)
                try:
                    outcome = self._attempt(state, statement, keyspace, token)
                except ExecutionCancelled as exc:
                    logger.info("Statement cancelled while running on %s", state.host)
                    return exc.to_failure()
                except DriverConnectionError as exc:
                    self._mark_failed(state, exc)
                    errors.append(f"{state.host}: {exc}")
                    logger.warning("Host %s failed, trying next host", state.host)
                    continue
                except DriverStatementError as exc:
                    logger.debug("Statement failed on %s: %s", state.host, exc)
                    return exc.to_failure()

                self._mark_healthy(state)
                self._cursor = self._hosts.index(state)
                if isinstance(outcome, Rows):
                    result = outcome.result
                    return Rows(ResultSet(result.columns, self._stream(result, token)))
                return outcome

        return Failure(
            ErrorKind.CONNECTION,
            f"All {len(errors)} host(s) failed: " + "; ".join(errors),
            retriable=True,
        )

    def close(self) -> None:
        for state in self._hosts:
            if state.handle is None:
                continue
            try:
                self.driver.close(state.handle)
            except DriverError as exc:
                logger.warning("Error closing connection to %s: %s", state.host, exc)
            state.handle = None
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    def __enter__(self) -> "ClusterSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _candidates(self) -> List[HostState]:
        with self._health_lock:
            count = len(self._hosts)
            rotated = [self._hosts[(self._cursor + i) % count] for i in range(count)]
            healthy = [state for state in rotated if state.healthy]
            unhealthy = sorted(
                (state for state in rotated if not state.healthy),
                key=lambda state: state.last_failure or 0.0,
            )
        return healthy + unhealthy

    def _attempt(
        self,
        state: HostState,
        statement: str,
        keyspace: Optional[str],
        token: CancellationToken,
    ):
        if state.handle is None:
            state.handle = self._call(
                token,
                self.driver.connect,
                state.host,
                self._credentials,
                self._tls,
                on_abandon=self._close_quietly,
            )
        return self._call(token, self.driver.submit, state.handle, statement, keyspace)

    def _call(self, token: CancellationToken, fn, *args, on_abandon=None):
        """Run ``fn`` on a worker thread, waking up to check ``token``."""
        future: Future = self._get_executor().submit(fn, *args)
        while True:
            done, _ = wait([future], timeout=self.poll_interval)
            if done:
                return future.result()
            if token.cancelled:
                if not future.cancel() and on_abandon is not None:
                    future.add_done_callback(on_abandon)
                raise ExecutionCancelled()

    def _stream(self, result: ResultSet, token: CancellationToken) -> Iterator[Row]:
        """Pull rows on a worker thread so a stalled page fetch stays cancellable.

        Rows pass through a bounded queue. The consumer polls it, checking
        ``token`` between rows and while waiting. Errors raised by the
        underlying iterator are re-raised here. Nothing is fetched until the
        first row is asked for.
        """
        token.raise_if_cancelled()
        buffer: "queue.Queue[Any]" = queue.Queue(maxsize=_STREAM_BUFFER)
        stop = threading.Event()

        def offer(item: Any) -> bool:
            while not stop.is_set():
                try:
                    buffer.put(item, timeout=self.poll_interval)
                    return True
                except queue.Full:
                    continue
            return False

        def produce() -> None:
            try:
                for row in result:
                    if not offer(row):
                        return
            except Exception as exc:
                offer(_Raised(exc))
                return
            offer(_END)

        self._get_executor().submit(produce)
        try:
            while True:
                try:
                    item = buffer.get(timeout=self.poll_interval)
                except queue.Empty:
                    token.raise_if_cancelled()
                    continue
                if item is _END:
                    return
                if isinstance(item, _Raised):
                    raise item.error
                token.raise_if_cancelled()
                yield item
        finally:
            stop.set()

    def _close_quietly(self, future: Future) -> None:
        if future.cancelled() or future.exception() is not None:
            return
        try:
            self.driver.close(future.result())
        except DriverError as exc:
            logger.debug("Error closing abandoned connection: %s", exc)

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers, thread_name_prefix="cqlcli-exec"
            )
        return self._executor

    def _mark_failed(self, state: HostState, exc: Exception) -> None:
        with self._health_lock:
            if state.healthy:
                logger.warning("Marking host %s unhealthy: %s", state.host, exc)
            state.healthy = False
            state.failures += 1
            state.last_failure = self._clock()
            state.last_error = str(exc)

    def _mark_healthy(self, state: HostState) -> None:
        with self._health_lock:
            if not state.healthy:
                logger.info("Host %s is healthy", state.host)
            state.healthy = True
            state.last_error = None


@dataclass
class _Raised:
    error: Exception
