"""Runtime-checkable protocols for the DB-API objects sqlbind works with.

Only the parts of PEP 249 that sqlbind calls are described here, so any
compliant driver (``sqlite3``, ``psycopg``, ``oracledb``...) satisfies them.
"""

from typing import Any, Optional, Protocol, runtime_checkable

__all__ = (
    "ConnectionProtocol",
    "CursorProtocol",
    "DriverModuleProtocol",
)


@runtime_checkable
class CursorProtocol(Protocol):
    """Protocol for DB-API cursors."""

    rowcount: int

    def execute(self, operation: str, parameters: Any = ...) -> Any:
        """Execute an operation with positional parameters."""
        ...

    def fetchone(self) -> Optional[Any]:
        """Fetch the next row."""
        ...

    def fetchall(self) -> "list[Any]":
        """Fetch all remaining rows."""
        ...

    def close(self) -> None:
        """Close the cursor."""
        ...


@runtime_checkable
class ConnectionProtocol(Protocol):
    """Protocol for DB-API connections."""

    def cursor(self, *args: Any, **kwargs: Any) -> CursorProtocol:
        """Create a cursor."""
        ...

    def commit(self) -> None:
        """Commit the current transaction."""
        ...

    def rollback(self) -> None:
        """Roll back the current transaction."""
        ...

    def close(self) -> None:
        """Close the connection."""
        ...


@runtime_checkable
class DriverModuleProtocol(Protocol):
    """Protocol for DB-API driver modules."""

    def connect(self, *args: Any, **kwargs: Any) -> ConnectionProtocol:
        """Open a connection."""
        ...
