"""Base class for data access objects.

A DAO subclass owns a statement catalog named after the class and gets its
connections from a :class:`~sqlbind.connection.ConnectionManager`::

    class LibraryDAO(BaseDAO):
        def get_all_libraries(self) -> list[tuple]:
            stmt = self.get_statement("getAllLibraries")
            connection = self.get_connection("getAllLibraries")
            cursor = None
            try:
                cursor = stmt.execute_query(connection)
                rows = cursor.fetchall()
            except SQLBindError as e:
                self.close_and_rollback(connection, cursor)
                self.raise_dao_error(e, stmt)
            self.close_and_commit(connection, cursor)
            return rows
"""

from typing import TYPE_CHECKING, NoReturn, Optional, Union

from sqlbind.catalog import StatementCatalog, get_default_catalog
from sqlbind.connection import ConnectionManager, get_connection_manager
from sqlbind.core.statement import SQLStatement
from sqlbind.exceptions import DAOError, ImproperConfigurationError
from sqlbind.utils.logging import get_logger

if TYPE_CHECKING:
    from sqlbind.protocols import ConnectionProtocol, CursorProtocol

__all__ = ("BaseDAO",)


class BaseDAO:
    """Common statement lookup, connection and cleanup helpers for DAOs.

    Args:
        manager: Source of connections; the process wide manager when omitted.
        catalog: Source of statements; the process wide catalog when omitted.
    """

    def __init__(
        self, manager: "Optional[ConnectionManager]" = None, catalog: "Optional[StatementCatalog]" = None
    ) -> None:
        self._manager = manager
        self._catalog = catalog
        self.logger = get_logger(f"dao.{type(self).__name__}")

    @property
    def manager(self) -> ConnectionManager:
        return self._manager if self._manager is not None else get_connection_manager()

    @property
    def catalog(self) -> StatementCatalog:
        return self._catalog if self._catalog is not None else get_default_catalog()

    def get_statement(self, statement_id: str) -> "Optional[SQLStatement]":
        """New statement for ``statement_id`` from this DAO's catalog.

        The marker style follows the driver of the statement's datasource
        when a connection manager is available.

        Returns:
            The statement, or None when the id is unknown and the catalog is not strict.
        """
        info = self.catalog.get_info(self, statement_id)
        if info is None:
            return None
        style = self.catalog.style
        if info.datasource is not None:
            try:
                manager = self.manager
            except ImproperConfigurationError:
                manager = None
            if manager is not None and info.datasource in manager.datasources:
                style = manager.parameter_style(info.datasource)
        return SQLStatement(info, style=style)

    def get_connection(self, statement_id: str) -> "ConnectionProtocol":
        """Connection to the datasource of ``statement_id``.

        Raises:
            DAOError: The statement is unknown or names no datasource.
        """
        datasource = self.catalog.datasource_for(self, statement_id)
        if datasource is None:
            msg = f"No datasource known for statement '{statement_id}'"
            raise DAOError(msg, self)
        return self.manager.get_connection(datasource)

    def close_connection(self, connection: "Optional[ConnectionProtocol]") -> None:
        """Hand the connection back to its pool, or close it when unpooled."""
        if connection is None:
            return
        try:
            try:
                manager = self.manager
            except ImproperConfigurationError:
                connection.close()
            else:
                manager.release(connection)
        except Exception:
            self.logger.warning("Failed to close connection", exc_info=True)

    def commit_and_close(self, connection: "Optional[ConnectionProtocol]") -> None:
        """Commit the connection's transaction, then close it."""
        if connection is None:
            return
        try:
            connection.commit()
        except Exception:
            self.logger.warning("Failed to commit before closing connection", exc_info=True)
        self.close_connection(connection)

    def rollback_and_close(self, connection: "Optional[ConnectionProtocol]") -> None:
        """Roll back the connection's transaction, then close it."""
        if connection is None:
            return
        try:
            connection.rollback()
        except Exception:
            self.logger.warning("Failed to roll back before closing connection", exc_info=True)
        self.close_connection(connection)

    def close_cursor(self, cursor: "Optional[CursorProtocol]") -> None:
        if cursor is None:
            return
        try:
            cursor.close()
        except Exception:
            self.logger.debug("Failed to close cursor", exc_info=True)

    def close_and_commit(
        self, connection: "Optional[ConnectionProtocol]", cursor: "Optional[CursorProtocol]" = None
    ) -> None:
        self.close_cursor(cursor)
        self.commit_and_close(connection)

    def close_and_rollback(
        self, connection: "Optional[ConnectionProtocol]", cursor: "Optional[CursorProtocol]" = None
    ) -> None:
        self.close_cursor(cursor)
        self.rollback_and_close(connection)

    def raise_dao_error(self, error: Exception, statement: "Union[SQLStatement, str]") -> NoReturn:
        """Log ``error`` and raise it as a :class:`DAOError`.

        Args:
            error: The failure being reported.
            statement: The statement that failed, or a message.

        Raises:
            DAOError: Always, chained from ``error``.
        """
        if isinstance(statement, SQLStatement):
            message = f"Error performing query '{statement}'"
        else:
            message = statement
        self.logger.error(message, exc_info=error)
        raise DAOError(message, self) from error
