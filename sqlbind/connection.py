import atexit
import threading
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

from sqlbind.config import DatasourceConfig, load_datasource_configs
from sqlbind.core.parameters import ParameterStyle
from sqlbind.exceptions import ImproperConfigurationError
from sqlbind.pool import ConnectionPool
from sqlbind.utils.logging import get_logger

if TYPE_CHECKING:
    from sqlbind.protocols import ConnectionProtocol

__all__ = (
    "ConnectionManager",
    "get_connection_manager",
    "set_connection_manager",
)

logger = get_logger("connection")


class ConnectionManager:
    """Registry of datasources and their connection pools.

    Pools are opened on first use of their datasource and closed by
    :meth:`close_pools`, which also runs at interpreter exit while any pool
    is open.
    """

    __slots__ = ("_configs", "_lock", "_owners", "_pools")

    def __init__(self, configs: "Iterable[DatasourceConfig]" = ()) -> None:
        self._configs: dict[str, DatasourceConfig] = {}
        self._pools: dict[str, ConnectionPool] = {}
        self._owners: dict[int, str] = {}
        self._lock = threading.RLock()
        for config in configs:
            self.add_config(config)

    @classmethod
    def from_properties(cls, path: "Union[str, Path]") -> "ConnectionManager":
        """Create a manager from a datasource properties file."""
        return cls(load_datasource_configs(path))

    def add_config(self, config: DatasourceConfig) -> None:
        """Register a datasource.

        Raises:
            ImproperConfigurationError: A datasource with the same name exists.
        """
        with self._lock:
            if config.name in self._configs:
                msg = f"Datasource '{config.name}' is already configured"
                raise ImproperConfigurationError(msg)
            self._configs[config.name] = config

    def get_config(self, datasource: str) -> DatasourceConfig:
        """Configuration of a datasource.

        Raises:
            ImproperConfigurationError: The datasource is not configured.
        """
        config = self._configs.get(datasource)
        if config is None:
            msg = f"Unknown datasource '{datasource}'"
            raise ImproperConfigurationError(msg, detail=f"Configured datasources: {sorted(self._configs)}")
        return config

    @property
    def datasources(self) -> "list[str]":
        return sorted(self._configs)

    def parameter_style(self, datasource: str) -> ParameterStyle:
        """Positional marker style the driver of ``datasource`` expects."""
        return self.get_config(datasource).resolve_parameter_style()

    def get_pool(self, datasource: str) -> ConnectionPool:
        """Pool of a datasource, opened on first use."""
        pool = self._pools.get(datasource)
        if pool is None:
            with self._lock:
                pool = self._pools.get(datasource)
                if pool is None:
                    config = self.get_config(datasource)
                    pool = ConnectionPool(
                        config.name,
                        config.create_connection,
                        pool_size=config.pool_size,
                        min_size=config.min_size,
                        timeout=config.timeout,
                        on_connection_create=config.on_connection_create,
                    )
                    pool.warm()
                    if not self._pools:
                        atexit.register(self.close_pools)
                    self._pools[datasource] = pool
                    logger.info("Opened connection pool for datasource '%s'", datasource)
        return pool

    def get_connection(self, datasource: str, timeout: "Optional[float]" = None) -> "ConnectionProtocol":
        """Acquire a pooled connection to ``datasource``.

        Hand the connection back with :meth:`release`.

        Raises:
            ImproperConfigurationError: The datasource is not configured.
            PoolTimeoutError: No connection became available in time.
        """
        connection = self.get_pool(datasource).acquire(timeout)
        with self._lock:
            self._owners[id(connection)] = datasource
        return connection

    def release(self, connection: "ConnectionProtocol") -> None:
        """Return a connection to the pool it came from.

        Connections this manager did not hand out are closed.
        """
        with self._lock:
            datasource = self._owners.pop(id(connection), None)
        pool = self._pools.get(datasource) if datasource is not None else None
        if pool is None:
            logger.warning("Releasing a connection not owned by this manager; closing it")
            connection.close()
            return
        pool.release(connection)

    @contextmanager
    def connection(self, datasource: str) -> "Generator[ConnectionProtocol, None, None]":
        """Acquire a connection to ``datasource`` for a ``with`` block."""
        connection = self.get_connection(datasource)
        try:
            yield connection
        finally:
            self.release(connection)

    def close_pools(self) -> None:
        """Close every open pool.

        Pools reopen on the next use of their datasource.
        """
        with self._lock:
            pools = list(self._pools.values())
            self._pools.clear()
            atexit.unregister(self.close_pools)
        for pool in pools:
            pool.close()


_default_manager: Optional[ConnectionManager] = None
_default_manager_lock = threading.Lock()


def get_connection_manager() -> ConnectionManager:
    """Get the process wide connection manager.

    Raises:
        ImproperConfigurationError: No manager has been set.
    """
    if _default_manager is None:
        msg = "No connection manager configured; call set_connection_manager() first"
        raise ImproperConfigurationError(msg)
    return _default_manager


def set_connection_manager(manager: "Optional[ConnectionManager]") -> None:
    """Install the process wide connection manager, closing the previous one's pools."""
    global _default_manager
    with _default_manager_lock:
        previous, _default_manager = _default_manager, manager
    if previous is not None and previous is not manager:
        previous.close_pools()
