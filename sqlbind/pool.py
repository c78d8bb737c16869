"""Thread-safe pool of DB-API connections."""

import logging
import queue
import threading
import time
import uuid
from collections.abc import Generator
from contextlib import contextmanager, suppress
from typing import TYPE_CHECKING, Callable, Optional

from mypy_extensions import mypyc_attr

from sqlbind.exceptions import PoolClosedError, PoolTimeoutError
from sqlbind.utils.logging import POOL_LOGGER_NAME, get_logger, log_with_context

if TYPE_CHECKING:
    from sqlbind.protocols import ConnectionProtocol

__all__ = (
    "ConnectionPool",
    "PooledConnection",
)

logger = get_logger(POOL_LOGGER_NAME)


class PooledConnection:
    """Wrapper for database connections in the pool."""

    __slots__ = ("_closed", "connection", "id", "idle_since")

    def __init__(self, connection: "ConnectionProtocol") -> None:
        self.id = uuid.uuid4().hex
        self.connection = connection
        self.idle_since: Optional[float] = None
        self._closed = False

    @property
    def idle_time(self) -> float:
        """Idle time in seconds, 0.0 while the connection is in use."""
        if self.idle_since is None:
            return 0.0
        return time.time() - self.idle_since

    @property
    def is_closed(self) -> bool:
        return self._closed

    def mark_as_in_use(self) -> None:
        self.idle_since = None

    def mark_as_idle(self) -> None:
        self.idle_since = time.time()

    def reset(self) -> bool:
        """Roll back any open transaction.

        Returns:
            False when the rollback failed and the connection should be retired.
        """
        try:
            self.connection.rollback()
        except Exception:
            return False
        return True

    def close(self) -> None:
        if self._closed:
            return
        try:
            self.connection.close()
        except Exception:
            log_with_context(logger, logging.DEBUG, "pool.connection.close.error", connection_id=self.id)
        finally:
            self._closed = True


@mypyc_attr(allow_interpreted_subclasses=False)
class ConnectionPool:
    """Bounded pool of connections to one datasource.

    Connections are created lazily up to ``pool_size``. A released connection
    is rolled back and handed to the next caller; the most recently used
    connection is reused first.

    Args:
        name: Datasource name, used in logs and errors.
        factory: Opens a new connection.
        pool_size: Maximum number of open connections.
        min_size: Connections opened by :meth:`warm`.
        timeout: Seconds :meth:`acquire` waits for a free connection.
        idle_timeout: Idle connections older than this are closed instead of reused.
        on_connection_create: Called with each new connection.
    """

    __slots__ = (
        "_closed",
        "_factory",
        "_idle",
        "_idle_timeout",
        "_in_use",
        "_lock",
        "_min_size",
        "_name",
        "_on_connection_create",
        "_pool_id",
        "_pool_size",
        "_size",
        "_timeout",
    )

    def __init__(
        self,
        name: str,
        factory: "Callable[[], ConnectionProtocol]",
        *,
        pool_size: int = 5,
        min_size: int = 0,
        timeout: float = 30.0,
        idle_timeout: float = 24 * 60 * 60,
        on_connection_create: "Optional[Callable[[ConnectionProtocol], None]]" = None,
    ) -> None:
        self._name = name
        self._factory = factory
        self._pool_size = pool_size
        self._min_size = min(min_size, pool_size)
        self._timeout = timeout
        self._idle_timeout = idle_timeout
        self._on_connection_create = on_connection_create
        self._idle: queue.LifoQueue[PooledConnection] = queue.LifoQueue(maxsize=pool_size)
        self._in_use: dict[int, PooledConnection] = {}
        self._lock = threading.Lock()
        self._size = 0
        self._closed = False
        self._pool_id = uuid.uuid4().hex[:8]

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_closed(self) -> bool:
        return self._closed

    def size(self) -> int:
        """Total number of open connections."""
        return self._size

    def checked_out(self) -> int:
        """Number of connections currently in use."""
        return len(self._in_use)

    def warm(self) -> None:
        """Open connections until ``min_size`` are idle or in use."""
        while self._size < self._min_size:
            pooled = self._try_create()
            if pooled is None:
                return
            pooled.mark_as_idle()
            self._idle.put_nowait(pooled)

    def acquire(self, timeout: "Optional[float]" = None) -> "ConnectionProtocol":
        """Take a connection from the pool.

        Args:
            timeout: Seconds to wait; defaults to the pool timeout.

        Raises:
            PoolClosedError: The pool is closed.
            PoolTimeoutError: No connection became available in time.

        Returns:
            A connection, to be handed back with :meth:`release`.
        """
        wait = self._timeout if timeout is None else timeout
        deadline = time.monotonic() + wait
        while True:
            if self._closed:
                msg = f"Pool '{self._name}' is closed"
                raise PoolClosedError(msg)
            try:
                pooled = self._idle.get_nowait()
            except queue.Empty:
                pooled = self._try_create()
                if pooled is None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        msg = f"Timed out after {wait:.1f}s waiting for a connection to '{self._name}'"
                        raise PoolTimeoutError(msg) from None
                    try:
                        pooled = self._idle.get(timeout=min(remaining, 0.1))
                    except queue.Empty:
                        continue
            if pooled.is_closed:
                self._forget(pooled)
                continue
            if pooled.idle_time > self._idle_timeout:
                self._retire(pooled, reason="idle_timeout")
                continue
            pooled.mark_as_in_use()
            with self._lock:
                self._in_use[id(pooled.connection)] = pooled
            return pooled.connection

    def release(self, connection: "ConnectionProtocol") -> None:
        """Return a connection to the pool.

        The connection is rolled back; a connection that fails to roll back,
        or that comes back after the pool was closed, is closed instead.
        Connections that do not belong to the pool are closed.
        """
        with self._lock:
            pooled = self._in_use.pop(id(connection), None)
        if pooled is None:
            log_with_context(logger, logging.WARNING, "pool.release.unknown", pool=self._name)
            with suppress(Exception):
                connection.close()
            return
        if self._closed or not pooled.reset():
            self._retire(pooled, reason="closed" if self._closed else "reset_failed")
            return
        pooled.mark_as_idle()
        self._idle.put_nowait(pooled)

    @contextmanager
    def connection(self, timeout: "Optional[float]" = None) -> "Generator[ConnectionProtocol, None, None]":
        """Acquire a connection for the duration of a ``with`` block."""
        connection = self.acquire(timeout)
        try:
            yield connection
        finally:
            self.release(connection)

    def close(self) -> None:
        """Close idle connections and refuse further acquisitions.

        Connections still in use are closed when they are released.
        """
        logger.info("Shutting down connection pool '%s'", self._name)
        self._closed = True
        while True:
            try:
                pooled = self._idle.get_nowait()
            except queue.Empty:
                break
            self._retire(pooled, reason="pool_closed")
        logger.info("Connection pool '%s' shut down", self._name)

    def _try_create(self) -> "Optional[PooledConnection]":
        with self._lock:
            if self._size >= self._pool_size:
                return None
            self._size += 1
        try:
            connection = self._factory()
            if self._on_connection_create is not None:
                self._on_connection_create(connection)
        except Exception:
            with self._lock:
                self._size -= 1
            raise
        pooled = PooledConnection(connection)
        log_with_context(
            logger,
            logging.DEBUG,
            "pool.connection.create",
            pool=self._name,
            pool_id=self._pool_id,
            connection_id=pooled.id,
            pool_size=self._size,
            max_size=self._pool_size,
        )
        return pooled

    def _forget(self, pooled: PooledConnection) -> None:
        with self._lock:
            self._size -= 1

    def _retire(self, pooled: PooledConnection, *, reason: str) -> None:
        log_with_context(
            logger, logging.DEBUG, "pool.connection.retire", pool=self._name, connection_id=pooled.id, reason=reason
        )
        self._forget(pooled)
        pooled.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r}, size={self._size}, checked_out={self.checked_out()})"
