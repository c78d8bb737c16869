from typing import Any, Optional

__all__ = (
    "CatalogLoadError",
    "DAOError",
    "DriverError",
    "ImproperConfigurationError",
    "MissingDependencyError",
    "NullBindError",
    "ParameterError",
    "PoolClosedError",
    "PoolTimeoutError",
    "SQLBindError",
    "StatementNotFoundError",
    "TypeMismatchError",
    "UnboundVariableError",
)


class SQLBindError(Exception):
    """Base exception class from which all sqlbind exceptions inherit."""

    detail: str

    def __init__(self, *args: Any, detail: str = "") -> None:
        """Initialize ``SQLBindError``.

        Args:
            *args: args are converted to :class:`str` before passing to :class:`Exception`
            detail: detail of the exception.
        """
        str_args = [str(arg) for arg in args if arg]
        if not detail:
            if str_args:
                detail, *str_args = str_args
            elif hasattr(self, "detail"):
                detail = self.detail
        self.detail = detail
        super().__init__(*str_args)

    def __repr__(self) -> str:
        if self.detail:
            return f"{self.__class__.__name__} - {self.detail}"
        return self.__class__.__name__

    def __str__(self) -> str:
        return " ".join((*self.args, self.detail)).strip()


class MissingDependencyError(SQLBindError, ImportError):
    """Missing optional dependency.

    This exception is raised only when a module depends on a dependency that has not been installed.
    """

    def __init__(self, package: str, install_package: Optional[str] = None) -> None:
        super().__init__(
            f"Package {package!r} is not installed but required. You can install it by running "
            f"'pip install sqlbind[{install_package or package}]' to install sqlbind with the required extra "
            f"or 'pip install {install_package or package}' to install the package separately",
        )


class ImproperConfigurationError(SQLBindError):
    """Improper Configuration error.

    Raised for unknown datasources and invalid pool or driver settings.
    """


# -- Parameter Errors --
class ParameterError(SQLBindError):
    """Base class for bind variable errors."""

    variable: Optional[str]
    statement_id: Optional[str]
    sql: Optional[str]

    def __init__(
        self,
        message: str,
        *,
        variable: Optional[str] = None,
        statement_id: Optional[str] = None,
        sql: Optional[str] = None,
    ) -> None:
        """Initialize with optional statement context."""
        detail_message = message
        if statement_id:
            detail_message = f"{detail_message} (SQL ID: {statement_id})"
        if sql:
            detail_message = f"{detail_message}\nSQL: {sql}"
        super().__init__(detail=detail_message)
        self.variable = variable
        self.statement_id = statement_id
        self.sql = sql


class UnboundVariableError(ParameterError):
    """Raised when a placeholder has no bound value at rewrite or bind time."""

    def __init__(self, variable: str, *, statement_id: Optional[str] = None, sql: Optional[str] = None) -> None:
        super().__init__(
            f"Bind variable '{variable}' not bound", variable=variable, statement_id=statement_id, sql=sql
        )


class NullBindError(ParameterError, ValueError):
    """Raised when ``None`` is bound to a variable.

    Nulls are not a supported bind value; bind a sentinel or use a literal fragment instead.
    """

    def __init__(self, variable: Optional[str] = None, *, statement_id: Optional[str] = None) -> None:
        message = "Attempt to bind null value"
        if variable:
            message = f"{message} to '{variable}'"
        super().__init__(message, variable=variable, statement_id=statement_id)


class TypeMismatchError(SQLBindError, TypeError):
    """Raised when a typed value is read or bound as a kind it does not hold."""

    expected: str
    actual: str
    variable: Optional[str]
    statement_id: Optional[str]

    def __init__(
        self,
        expected: str,
        actual: str,
        *,
        variable: Optional[str] = None,
        statement_id: Optional[str] = None,
    ) -> None:
        detail_message = f"Value is of kind {actual} and not of kind {expected}"
        if variable:
            detail_message = f"{detail_message} (variable: {variable})"
        if statement_id:
            detail_message = f"{detail_message} (SQL ID: {statement_id})"
        super().__init__(detail=detail_message)
        self.expected = expected
        self.actual = actual
        self.variable = variable
        self.statement_id = statement_id


# -- Execution Errors --
class DriverError(SQLBindError):
    """Wraps a failure raised by the underlying DB-API driver.

    The original driver exception is available as ``__cause__``.
    """

    statement_id: Optional[str]
    sql: Optional[str]

    def __init__(self, message: str, *, statement_id: Optional[str] = None, sql: Optional[str] = None) -> None:
        detail_message = message
        if statement_id:
            detail_message = f"{detail_message} (SQL ID: {statement_id})"
        if sql:
            detail_message = f"{detail_message}\nSQL: {sql}"
        super().__init__(detail=detail_message)
        self.statement_id = statement_id
        self.sql = sql


# -- Catalog Errors --
class CatalogLoadError(SQLBindError):
    """Statement catalog is missing or malformed."""

    path: str

    def __init__(self, path: str, error: Optional[Exception] = None) -> None:
        message = f"Failed to load statement catalog {path}"
        if error is not None:
            message = f"{message}: {error}"
        super().__init__(message)
        self.path = path


class StatementNotFoundError(SQLBindError, KeyError):
    """A statement id is not present in a caller's catalog."""

    statement_id: str

    def __init__(self, statement_id: str, caller: Optional[str] = None) -> None:
        message = f"Statement '{statement_id}' not found"
        if caller:
            message = f"{message} in catalog for {caller}"
        super().__init__(message)
        self.statement_id = statement_id

    def __str__(self) -> str:
        return SQLBindError.__str__(self)


# -- Pool Errors --
class PoolTimeoutError(SQLBindError):
    """A connection could not be acquired within the configured timeout."""


class PoolClosedError(SQLBindError):
    """Pool has been closed and cannot accept new operations."""


class DAOError(SQLBindError):
    """Error raised by a data access object, wrapping the failure that caused it."""

    dao: Any

    def __init__(self, message: str, dao: Any = None) -> None:
        if dao is not None:
            message = f"{message} (in {type(dao).__name__})"
        super().__init__(message)
        self.dao = dao
