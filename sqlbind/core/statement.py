"""Executable statements with named bind variables.

:class:`SQLStatement` works like a prepared statement whose parameters are
referenced by name (``:varName``) instead of ``?``. A value bound to a name
is used for every occurrence of that name, and a sequence bound to a name is
expanded to one positional marker per element.

Example:
    ```python
    stmt = SQLStatement(
        StatementInfo(
            "find_users",
            "select * from users where id in (:ids) or manager = :ids order by $orderclause",
        )
    )
    stmt.bind_sequence("ids", [1, 2, 3])
    stmt.bind_literal(ORDER_BY_CLAUSE_TOKEN, "name")
    cursor = stmt.execute_query(connection)
    ```
"""

import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Final, Optional, Union

from sqlbind.core.parameters import ParameterStyle, is_sequence_binding, rewrite_placeholders, substitute_literals
from sqlbind.core.values import DateType, TypedValue
from sqlbind.exceptions import DriverError, NullBindError, TypeMismatchError, UnboundVariableError
from sqlbind.utils.logging import STATEMENT_LOGGER_NAME, get_logger
from sqlbind.utils.text import join_values

if TYPE_CHECKING:
    from sqlbind.protocols import ConnectionProtocol, CursorProtocol

__all__ = (
    "FROM_CLAUSE_TOKEN",
    "JOIN_CLAUSE_TOKEN",
    "ORDER_BY_CLAUSE_TOKEN",
    "SELECT_CLAUSE_TOKEN",
    "WHERE_CLAUSE_TOKEN",
    "Binding",
    "SQLStatement",
    "StatementInfo",
)

logger = get_logger(STATEMENT_LOGGER_NAME)

# common dynamic tokens
SELECT_CLAUSE_TOKEN: Final = "$selectclause"
FROM_CLAUSE_TOKEN: Final = "$fromclause"
JOIN_CLAUSE_TOKEN: Final = "$joinclause"
WHERE_CLAUSE_TOKEN: Final = "$whereclause"
ORDER_BY_CLAUSE_TOKEN: Final = "$orderclause"

Binding = Union[TypedValue, tuple[TypedValue, ...]]


@dataclass(frozen=True)
class StatementInfo:
    """An SQL template as held by a statement catalog."""

    statement_id: str
    """Id of the statement within its catalog."""

    sql: str
    """Raw template text with ``:name`` placeholders and ``$token`` literal sites."""

    datasource: "Optional[str]" = None
    """Name of the datasource the statement runs against by default."""


class _PreparedState:
    """Rewritten SQL and cursor cached for one connection and cursor mode."""

    __slots__ = ("connection", "cursor", "cursor_options", "names", "sql")

    def __init__(
        self,
        connection: "ConnectionProtocol",
        cursor_options: "tuple[tuple[str, Any], ...]",
        sql: str,
        names: "tuple[str, ...]",
        cursor: "CursorProtocol",
    ) -> None:
        self.connection = connection
        self.cursor_options = cursor_options
        self.sql = sql
        self.names = names
        self.cursor = cursor

    def matches(self, connection: "ConnectionProtocol", cursor_options: "tuple[tuple[str, Any], ...]") -> bool:
        return self.connection is connection and self.cursor_options == cursor_options


def _freeze_options(cursor_options: "Optional[Mapping[str, Any]]") -> "tuple[tuple[str, Any], ...]":
    if not cursor_options:
        return ()
    return tuple(sorted(cursor_options.items()))


class SQLStatement:
    """A template bound to values, executable against DB-API connections.

    The rewritten SQL and the cursor are cached after the first execution and
    reused as long as the connection, the cursor options and everything that
    affects the SQL text stay the same. Binding a scalar never changes the SQL
    text; binding a sequence, binding a literal or resetting the bindings does,
    and drops the cache, closing the cached cursor.

    Instances are not thread safe. Use one per caller.
    """

    __slots__ = ("_bindings", "_info", "_literals", "_prepared", "_style")

    def __init__(self, info: StatementInfo, *, style: ParameterStyle = ParameterStyle.QMARK) -> None:
        self._info = info
        self._style = ParameterStyle(style)
        self._bindings: dict[str, Binding] = {}
        self._literals: dict[str, str] = {}
        self._prepared: Optional[_PreparedState] = None

    @property
    def statement_id(self) -> str:
        return self._info.statement_id

    @property
    def info(self) -> StatementInfo:
        return self._info

    @property
    def style(self) -> ParameterStyle:
        return self._style

    @property
    def bindings(self) -> "Mapping[str, Binding]":
        """Read-only view of the bound values."""
        return MappingProxyType(self._bindings)

    @property
    def literals(self) -> "Mapping[str, str]":
        """Read-only view of the bound literal fragments."""
        return MappingProxyType(self._literals)

    @property
    def is_prepared(self) -> bool:
        return self._prepared is not None

    @property
    def sql(self) -> "Optional[str]":
        """Rewritten SQL of the last execution, or None when not prepared."""
        return self._prepared.sql if self._prepared is not None else None

    @property
    def names(self) -> "tuple[str, ...]":
        """Placeholder names in marker order of the last execution."""
        return self._prepared.names if self._prepared is not None else ()

    # -- binding --

    def bind(self, name: str, value: Any) -> "SQLStatement":
        """Bind a value to every occurrence of ``:name``.

        Scalars are wrapped with :meth:`TypedValue.of`; sequences other than
        strings are bound with :meth:`bind_sequence`. Binding a name that does
        not appear in the statement has no effect on execution.

        Args:
            name: Variable name without the leading colon.
            value: The value to bind.

        Raises:
            NullBindError: ``value`` is None.

        Returns:
            The statement, for chaining.
        """
        if value is None:
            raise NullBindError(name, statement_id=self.statement_id)
        if is_sequence_binding(value):
            return self.bind_sequence(name, value)
        # a scalar replacing a sequence changes the marker count
        if isinstance(self._bindings.get(name), tuple):
            self._clear_cache()
        self._bindings[name] = TypedValue.of(value)
        return self

    def bind_sequence(self, name: str, values: "Iterable[Any]") -> "SQLStatement":
        """Bind a sequence of values, expanded to one marker per element.

        Raises:
            NullBindError: ``values`` or one of its elements is None.
        """
        if values is None:
            raise NullBindError(name, statement_id=self.statement_id)
        typed = []
        for value in values:
            if value is None:
                raise NullBindError(name, statement_id=self.statement_id)
            typed.append(TypedValue.of(value))
        self._clear_cache()
        self._bindings[name] = tuple(typed)
        return self

    def bind_date(
        self, name: str, value: "Union[date, datetime]", date_type: DateType = DateType.DATE_AND_TIME
    ) -> "SQLStatement":
        """Bind the date, time or both parts of ``value`` as a DB formatted string.

        Formats are ``YYYYMMDD`` (``DATE_ONLY``), ``hhmmss`` (``TIME_ONLY``) and
        ``YYYYMMDDhhmmss`` (``DATE_AND_TIME``).

        Raises:
            NullBindError: ``value`` is None.
            ValueError: ``date_type`` is not a :class:`DateType`.
        """
        if value is None:
            raise NullBindError(name, statement_id=self.statement_id)
        return self.bind(name, TypedValue.from_date_type(value, DateType(date_type)))

    def bind_literal(self, token: str, text: str) -> "SQLStatement":
        """Replace every occurrence of ``token`` in the template with ``text``.

        Literal text is substituted before placeholders are rewritten, so it
        may itself contain ``:name`` placeholders.

        Raises:
            NullBindError: ``text`` is None.
        """
        if text is None:
            raise NullBindError(token, statement_id=self.statement_id)
        self._clear_cache()
        self._literals[token] = str(text)
        return self

    def bind_literal_list(self, token: str, values: "Iterable[Any]") -> "SQLStatement":
        """Bind a literal made of ``values`` joined with ``", "``."""
        return self.bind_literal(token, join_values(values))

    def reset_bindings(self) -> None:
        """Clear all bound values and literals.

        Every variable must be bound again before the next execution.
        """
        self._bindings.clear()
        self._literals.clear()
        self._clear_cache()

    # -- execution --

    def execute_query(
        self, connection: "ConnectionProtocol", cursor_options: "Optional[Mapping[str, Any]]" = None
    ) -> "CursorProtocol":
        """Execute the statement and return the cursor holding its result.

        The cursor is owned by the statement and reused by the next execution
        on the same connection, so fetch the rows before executing again.

        Args:
            connection: The DB-API connection to execute on.
            cursor_options: Keyword arguments for ``connection.cursor()``.

        Raises:
            UnboundVariableError: A placeholder has no bound value.
            TypeMismatchError: A bound value cannot be sent to the driver.
            DriverError: The driver failed to create the cursor or execute.

        Returns:
            The executed cursor.
        """
        return self._run(connection, cursor_options)

    def execute(
        self, connection: "ConnectionProtocol", cursor_options: "Optional[Mapping[str, Any]]" = None
    ) -> int:
        """Execute the statement and return the affected row count.

        Raises the same errors as :meth:`execute_query`.

        Returns:
            The cursor's ``rowcount`` (``-1`` when the driver does not know it).
        """
        cursor = self._run(connection, cursor_options)
        rowcount = getattr(cursor, "rowcount", -1)
        return rowcount if rowcount is not None else -1

    def close(self) -> None:
        """Close the cached cursor and drop the cache."""
        self._clear_cache()

    def __enter__(self) -> "SQLStatement":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _run(
        self, connection: "ConnectionProtocol", cursor_options: "Optional[Mapping[str, Any]]"
    ) -> "CursorProtocol":
        debug = logger.isEnabledFor(logging.DEBUG)
        start = time.perf_counter()
        if debug:
            logger.debug("%s", self)
        try:
            prepared = self._prepare(connection, _freeze_options(cursor_options))
            parameters = self._positional_parameters(prepared)
            try:
                if parameters:
                    prepared.cursor.execute(prepared.sql, parameters)
                else:
                    prepared.cursor.execute(prepared.sql)
            except Exception as exc:
                msg = f"Failed to execute statement: {exc}"
                raise DriverError(msg, statement_id=self.statement_id, sql=prepared.sql) from exc
        except Exception:
            self._clear_cache()
            raise
        finally:
            if debug:
                elapsed = (time.perf_counter() - start) * 1000
                logger.debug(
                    "Total time to execute SQL %s: %.3f ms",
                    self.statement_id,
                    elapsed,
                    extra={"extra_fields": {"statement_id": self.statement_id, "duration_ms": elapsed}},
                )
        return prepared.cursor

    def _prepare(
        self, connection: "ConnectionProtocol", cursor_options: "tuple[tuple[str, Any], ...]"
    ) -> _PreparedState:
        prepared = self._prepared
        if prepared is not None and prepared.matches(connection, cursor_options):
            return prepared
        self._clear_cache()

        # literals first, they may contain placeholders
        text = substitute_literals(self._info.sql, self._literals)
        rewritten = rewrite_placeholders(
            text, self._bindings, style=self._style, statement_id=self.statement_id
        )
        try:
            cursor = connection.cursor(**dict(cursor_options))
        except Exception as exc:
            msg = f"Failed to prepare statement: {exc}"
            raise DriverError(msg, statement_id=self.statement_id, sql=rewritten.sql) from exc
        self._prepared = _PreparedState(connection, cursor_options, rewritten.sql, rewritten.names, cursor)
        return self._prepared

    def _positional_parameters(self, prepared: _PreparedState) -> "list[Any]":
        parameters: list[Any] = []
        for name in prepared.names:
            binding = self._bindings.get(name)
            if binding is None:
                raise UnboundVariableError(name, statement_id=self.statement_id, sql=prepared.sql)
            values = binding if isinstance(binding, tuple) else (binding,)
            for value in values:
                try:
                    parameters.append(value.to_parameter())
                except TypeMismatchError as exc:
                    raise TypeMismatchError(
                        exc.expected, exc.actual, variable=name, statement_id=self.statement_id
                    ) from exc
        return parameters

    def _clear_cache(self) -> None:
        prepared, self._prepared = self._prepared, None
        if prepared is None:
            return
        try:
            prepared.cursor.close()
        except Exception:
            logger.debug("Failed to close cursor of %s", self.statement_id, exc_info=True)

    def render(self) -> str:
        """Statement id, SQL with literals substituted and the bound values."""
        text = substitute_literals(self._info.sql, self._literals)
        parameters = {
            name: [str(v) for v in binding] if isinstance(binding, tuple) else str(binding)
            for name, binding in self._bindings.items()
        }
        return f"SQL ID: {self.statement_id}\nSQL Statement: {text}\nParameters: {parameters}"

    def __str__(self) -> str:
        return self.render()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(statement_id={self.statement_id!r}, prepared={self.is_prepared!r})"
