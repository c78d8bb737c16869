"""sqlbind: named bind variables and statement catalogs for DB-API drivers."""

from sqlbind import catalog, config, connection, core, dao, exceptions, loader, pool, utils
from sqlbind.__metadata__ import __version__
from sqlbind.catalog import StatementCatalog, get_default_catalog, lookup, set_default_catalog
from sqlbind.config import DatasourceConfig, load_datasource_configs
from sqlbind.connection import ConnectionManager, get_connection_manager, set_connection_manager
from sqlbind.core.parameters import ParameterStyle
from sqlbind.core.statement import (
    FROM_CLAUSE_TOKEN,
    JOIN_CLAUSE_TOKEN,
    ORDER_BY_CLAUSE_TOKEN,
    SELECT_CLAUSE_TOKEN,
    WHERE_CLAUSE_TOKEN,
    SQLStatement,
    StatementInfo,
)
from sqlbind.core.values import DateType, TypedValue, ValueKind
from sqlbind.dao import BaseDAO
from sqlbind.exceptions import (
    CatalogLoadError,
    DAOError,
    DriverError,
    ImproperConfigurationError,
    NullBindError,
    ParameterError,
    PoolClosedError,
    PoolTimeoutError,
    SQLBindError,
    StatementNotFoundError,
    TypeMismatchError,
    UnboundVariableError,
)
from sqlbind.pool import ConnectionPool

__all__ = (
    "FROM_CLAUSE_TOKEN",
    "JOIN_CLAUSE_TOKEN",
    "ORDER_BY_CLAUSE_TOKEN",
    "SELECT_CLAUSE_TOKEN",
    "WHERE_CLAUSE_TOKEN",
    "BaseDAO",
    "CatalogLoadError",
    "ConnectionManager",
    "ConnectionPool",
    "DAOError",
    "DatasourceConfig",
    "DateType",
    "DriverError",
    "ImproperConfigurationError",
    "NullBindError",
    "ParameterError",
    "ParameterStyle",
    "PoolClosedError",
    "PoolTimeoutError",
    "SQLBindError",
    "SQLStatement",
    "StatementCatalog",
    "StatementInfo",
    "StatementNotFoundError",
    "TypeMismatchError",
    "TypedValue",
    "UnboundVariableError",
    "ValueKind",
    "__version__",
    "catalog",
    "config",
    "connection",
    "core",
    "dao",
    "exceptions",
    "get_connection_manager",
    "get_default_catalog",
    "load_datasource_configs",
    "loader",
    "lookup",
    "pool",
    "set_connection_manager",
    "set_default_catalog",
    "utils",
)
