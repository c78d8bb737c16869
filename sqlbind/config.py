"""Datasource configuration.

A datasource is a named connection pool to one database. Configurations are
built in code or read from a properties file listing the pools::

    pools=main, audit
    driver.main=sqlite3
    url.main=/var/lib/app/main.db
    pool_size.main=10
    driver.audit=psycopg
    url.audit=postgresql://db/audit
    username.audit=app
    password.audit=secret
    param.audit.connect_timeout=5

Keys may also carry a ``jdbc.`` prefix (``jdbc.pools``, ``jdbc.url.main``...).
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import TYPE_CHECKING, Any, Callable, Final, Optional, TypedDict, Union

from typing_extensions import NotRequired

from sqlbind.core.parameters import ParameterStyle
from sqlbind.exceptions import ImproperConfigurationError
from sqlbind.utils.logging import get_logger
from sqlbind.utils.module_loader import import_string

if TYPE_CHECKING:
    from sqlbind.protocols import ConnectionProtocol, DriverModuleProtocol

__all__ = (
    "DatasourceConfig",
    "SqliteConnectionParams",
    "configs_from_properties",
    "load_datasource_configs",
    "parse_properties",
)

logger = get_logger("config")

PROPERTY_PREFIX: Final = "jdbc."
POOLS_KEY: Final = "pools"

# DB-API ``paramstyle`` to the positional style sqlbind emits
_PARAMSTYLE_MAP: Final = {
    "qmark": ParameterStyle.QMARK,
    "format": ParameterStyle.FORMAT,
    "pyformat": ParameterStyle.FORMAT,
    "numeric": ParameterStyle.NUMERIC,
    "named": ParameterStyle.NUMERIC,
}

# connect() keyword receiving ``url.<datasource>``, by driver module name
_URL_PARAMETER: Final = {"sqlite3": "database"}
_DEFAULT_URL_PARAMETER: Final = "dsn"


class SqliteConnectionParams(TypedDict, total=False):
    """sqlite3 connection parameters."""

    database: NotRequired[str]
    timeout: NotRequired[float]
    detect_types: NotRequired[int]
    isolation_level: "NotRequired[Optional[str]]"
    check_same_thread: NotRequired[bool]
    cached_statements: NotRequired[int]
    uri: NotRequired[bool]


@dataclass
class DatasourceConfig:
    """Configuration of one named datasource and its pool."""

    name: str
    """Datasource name used to acquire connections."""

    driver: "Union[str, ModuleType, DriverModuleProtocol]" = "sqlite3"
    """DB-API module, or its dotted import path."""

    connection_parameters: "Union[SqliteConnectionParams, dict[str, Any]]" = field(default_factory=dict)
    """Keyword arguments for the driver's ``connect()``."""

    pool_size: int = 5
    """Maximum number of connections in the pool."""

    min_size: int = 0
    """Connections created when the pool is opened."""

    timeout: float = 30.0
    """Seconds to wait for a free connection."""

    parameter_style: "Optional[ParameterStyle]" = None
    """Positional marker style; derived from the driver's ``paramstyle`` when unset."""

    on_connection_create: "Optional[Callable[[ConnectionProtocol], None]]" = None
    """Called with every new connection before it enters the pool."""

    def __post_init__(self) -> None:
        if not self.name:
            msg = "A datasource needs a name"
            raise ImproperConfigurationError(msg)
        if self.pool_size < 1:
            msg = f"pool_size of datasource '{self.name}' must be at least 1"
            raise ImproperConfigurationError(msg)
        if self.min_size < 0 or self.min_size > self.pool_size:
            msg = f"min_size of datasource '{self.name}' must be between 0 and pool_size"
            raise ImproperConfigurationError(msg)

    def resolve_driver(self) -> "DriverModuleProtocol":
        """The DB-API module of this datasource.

        Raises:
            ImproperConfigurationError: The driver cannot be imported or has no ``connect``.
        """
        driver: Any = self.driver
        if isinstance(driver, str):
            try:
                driver = import_string(driver)
            except ImportError as e:
                msg = f"Cannot import driver '{self.driver}' of datasource '{self.name}'"
                raise ImproperConfigurationError(msg) from e
        if not callable(getattr(driver, "connect", None)):
            msg = f"Driver of datasource '{self.name}' has no connect() function"
            raise ImproperConfigurationError(msg)
        return driver  # type: ignore[no-any-return]

    def resolve_parameter_style(self) -> ParameterStyle:
        """Marker style for this datasource, from the setting or the driver's ``paramstyle``."""
        if self.parameter_style is not None:
            return ParameterStyle(self.parameter_style)
        paramstyle = getattr(self.resolve_driver(), "paramstyle", "qmark")
        return _PARAMSTYLE_MAP.get(paramstyle, ParameterStyle.QMARK)

    def create_connection(self) -> "ConnectionProtocol":
        """Open a new, unpooled connection."""
        return self.resolve_driver().connect(**self.connection_parameters)


def parse_properties(content: str) -> "dict[str, str]":
    """Parse ``key=value`` lines; ``#`` and ``!`` start comment lines."""
    properties: dict[str, str] = {}
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line[0] in "#!":
            continue
        separator = min((i for i in (line.find("="), line.find(":")) if i != -1), default=-1)
        if separator == -1:
            properties[line] = ""
            continue
        properties[line[:separator].strip()] = line[separator + 1 :].strip()
    return properties


def _int_property(properties: "Mapping[str, str]", key: str, default: int) -> int:
    value = properties.get(key)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        msg = f"Property {key} must be an integer, got {value!r}"
        raise ImproperConfigurationError(msg) from e


def configs_from_properties(properties: "Mapping[str, str]") -> "list[DatasourceConfig]":
    """Build datasource configurations from parsed properties.

    Raises:
        ImproperConfigurationError: ``pools`` is missing or a value is invalid.
    """
    normalized = {
        (key[len(PROPERTY_PREFIX) :] if key.startswith(PROPERTY_PREFIX) else key): value
        for key, value in properties.items()
    }
    pools = normalized.get(POOLS_KEY)
    if not pools:
        msg = f"The property {POOLS_KEY} is not set"
        raise ImproperConfigurationError(msg)

    configs = []
    for raw_name in pools.split(","):
        name = raw_name.strip()
        if not name:
            continue
        driver = normalized.get(f"driver.{name}", "sqlite3")
        parameters: dict[str, Any] = {}
        url = normalized.get(f"url.{name}")
        if url:
            parameters[_URL_PARAMETER.get(driver, _DEFAULT_URL_PARAMETER)] = url
        if f"username.{name}" in normalized:
            parameters["user"] = normalized[f"username.{name}"]
        if f"password.{name}" in normalized:
            parameters["password"] = normalized[f"password.{name}"]
        param_prefix = f"param.{name}."
        for key, value in normalized.items():
            if key.startswith(param_prefix):
                parameters[key[len(param_prefix) :]] = value
        timeout = normalized.get(f"timeout.{name}")
        try:
            timeout_value = float(timeout) if timeout else 30.0
        except ValueError as e:
            msg = f"Property timeout.{name} must be a number, got {timeout!r}"
            raise ImproperConfigurationError(msg) from e
        style = normalized.get(f"paramstyle.{name}")
        configs.append(
            DatasourceConfig(
                name=name,
                driver=driver,
                connection_parameters=parameters,
                pool_size=_int_property(normalized, f"pool_size.{name}", 5),
                min_size=_int_property(normalized, f"min_size.{name}", 0),
                timeout=timeout_value,
                parameter_style=ParameterStyle(style) if style else None,
            )
        )
        logger.debug("Datasource '%s' configured with driver %s", name, driver)
    return configs


def load_datasource_configs(path: "Union[str, Path]", *, encoding: str = "utf-8") -> "list[DatasourceConfig]":
    """Read datasource configurations from a properties file.

    Raises:
        ImproperConfigurationError: The file cannot be read or is invalid.
    """
    try:
        content = Path(path).read_text(encoding=encoding)
    except OSError as e:
        msg = f"Cannot read datasource configuration {path}"
        raise ImproperConfigurationError(msg) from e
    return configs_from_properties(parse_properties(content))
