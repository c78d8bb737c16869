"""Integration tests running catalog statements against sqlite3.

``LibraryDAO`` reads its statements from ``LibraryDAO.xml`` beside this module,
through the default catalog resolver.
"""

from collections.abc import Generator
from datetime import date
from pathlib import Path
from typing import Any

import pytest

from sqlbind import (
    ORDER_BY_CLAUSE_TOKEN,
    WHERE_CLAUSE_TOKEN,
    BaseDAO,
    ConnectionManager,
    DAOError,
    DateType,
    DatasourceConfig,
    DriverError,
    SQLBindError,
    StatementCatalog,
    UnboundVariableError,
    set_connection_manager,
)

pytestmark = pytest.mark.integration


class LibraryDAO(BaseDAO):
    def create_schema(self) -> None:
        self._execute("createLibraryTable")

    def add_library(self, library_id: int, name: str, city: str, opened: date) -> int:
        stmt = self._statement("insertLibrary")
        stmt.bind("libraryId", library_id).bind("name", name).bind("city", city)
        stmt.bind_date("opened", opened, DateType.DATE_ONLY)
        connection = self.get_connection("insertLibrary")
        try:
            count = stmt.execute(connection)
        except SQLBindError as e:
            self.rollback_and_close(connection)
            self.raise_dao_error(e, stmt)
        self.commit_and_close(connection)
        return count

    def get_all_libraries(self, order: str) -> "list[tuple[Any, ...]]":
        stmt = self._statement("getAllLibraries")
        stmt.bind_literal(ORDER_BY_CLAUSE_TOKEN, order)
        return self._fetch(stmt)

    def get_libraries_by_id(self, ids: "list[int]") -> "list[str]":
        stmt = self._statement("getLibrariesById")
        stmt.bind_sequence("ids", ids)
        return [row[0] for row in self._fetch(stmt)]

    def _statement(self, statement_id: str) -> Any:
        stmt = self.get_statement(statement_id)
        assert stmt is not None
        return stmt

    def _execute(self, statement_id: str) -> None:
        stmt = self._statement(statement_id)
        connection = self.get_connection(statement_id)
        try:
            stmt.execute(connection)
        finally:
            self.commit_and_close(connection)

    def _fetch(self, stmt: Any) -> "list[tuple[Any, ...]]":
        connection = self.get_connection(stmt.statement_id)
        cursor = None
        try:
            cursor = stmt.execute_query(connection)
            rows = cursor.fetchall()
        except SQLBindError as e:
            self.close_and_rollback(connection, cursor)
            self.raise_dao_error(e, stmt)
        self.close_and_commit(connection, cursor)
        return list(rows)


@pytest.fixture
def manager(tmp_path: Path) -> Generator[ConnectionManager, None, None]:
    config = DatasourceConfig(
        "library", driver="sqlite3", connection_parameters={"database": str(tmp_path / "library.db")}, pool_size=2
    )
    manager = ConnectionManager([config])
    set_connection_manager(manager)
    yield manager
    manager.close_pools()


@pytest.fixture
def dao(manager: ConnectionManager) -> LibraryDAO:
    dao = LibraryDAO(manager, StatementCatalog(strict=True))
    dao.create_schema()
    dao.add_library(1, "State Library", "Melbourne", date(1856, 2, 11))
    dao.add_library(2, "City Library", "Sydney", date(1910, 6, 1))
    dao.add_library(3, "Docklands Library", "Melbourne", date(2014, 4, 1))
    return dao


def test_catalog_found_beside_module(dao: LibraryDAO) -> None:
    assert "getAllLibraries" in dao.catalog.statement_ids(LibraryDAO)
    assert dao.catalog.datasource_for(LibraryDAO, "getAllLibraries") == "library"


def test_order_by_literal(dao: LibraryDAO) -> None:
    """Test the order clause literal changes the result order."""
    by_name = [row[1] for row in dao.get_all_libraries("NAME")]
    by_id_desc = [row[0] for row in dao.get_all_libraries("LIBRARY_ID desc")]

    assert by_name == ["City Library", "Docklands Library", "State Library"]
    assert by_id_desc == [3, 2, 1]


def test_sequence_binding(dao: LibraryDAO) -> None:
    assert dao.get_libraries_by_id([3, 1]) == ["State Library", "Docklands Library"]
    assert dao.get_libraries_by_id([2]) == ["City Library"]


def test_dates_stored_in_db_format(manager: ConnectionManager) -> None:
    dao = LibraryDAO(manager, StatementCatalog())
    dao.create_schema()
    dao.add_library(9, "Branch", "Hobart", date(2001, 3, 4))

    with manager.connection("library") as connection:
        row = connection.execute("select OPENED from LIBRARY where LIBRARY_ID = 9").fetchone()

    assert row == ("20010304",)


def test_repeated_name_and_where_literal(dao: LibraryDAO, manager: ConnectionManager) -> None:
    """Test one bound name fills both occurrences and literals may add placeholders."""
    stmt = dao.get_statement("getLibrariesInCities")
    assert stmt is not None
    stmt.bind("city", "Melbourne").bind_literal(WHERE_CLAUSE_TOKEN, "and LIBRARY_ID > :minId").bind("minId", 1)

    with manager.connection("library") as connection:
        rows = stmt.execute_query(connection).fetchall()
        assert stmt.names == ("city", "city", "minId")
        rows_again = stmt.bind("minId", 0).execute_query(connection).fetchall()

    assert rows == [("Docklands Library",)]
    assert rows_again == [("Docklands Library",), ("State Library",)]


def test_statement_reused_across_executions(dao: LibraryDAO, manager: ConnectionManager) -> None:
    """Test scalar rebinds reuse the prepared cursor on the same connection."""
    stmt = dao.get_statement("deleteLibrary")
    assert stmt is not None

    with manager.connection("library") as connection:
        first = stmt.bind("libraryId", 1).execute_query(connection)
        second = stmt.bind("libraryId", 2).execute_query(connection)
        remaining = connection.execute("select count(*) from LIBRARY").fetchone()

    assert first is second
    assert remaining == (1,)


def test_unbound_variable_raises(dao: LibraryDAO, manager: ConnectionManager) -> None:
    stmt = dao.get_statement("getLibrariesById")
    assert stmt is not None

    with manager.connection("library") as connection, pytest.raises(UnboundVariableError, match="ids"):
        stmt.execute_query(connection)


def test_driver_error_carries_sql(dao: LibraryDAO, manager: ConnectionManager) -> None:
    """Test driver failures report the rewritten SQL."""
    stmt = dao.get_statement("getAllLibraries")
    assert stmt is not None
    stmt.bind_literal(ORDER_BY_CLAUSE_TOKEN, "NO_SUCH_COLUMN")

    with manager.connection("library") as connection, pytest.raises(DriverError) as exc_info:
        stmt.execute_query(connection)

    assert exc_info.value.sql == "select LIBRARY_ID, NAME from LIBRARY order by NO_SUCH_COLUMN"
    assert not stmt.is_prepared


def test_dao_error_wraps_failure(dao: LibraryDAO) -> None:
    with pytest.raises(DAOError) as exc_info:
        dao.add_library(1, "Duplicate", "Perth", date(2020, 1, 1))

    assert isinstance(exc_info.value.__cause__, DriverError)
