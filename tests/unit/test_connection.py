"""Unit tests for ConnectionManager."""

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest

from sqlbind.config import DatasourceConfig
from sqlbind.connection import ConnectionManager, get_connection_manager, set_connection_manager
from sqlbind.core.parameters import ParameterStyle
from sqlbind.exceptions import ImproperConfigurationError


def fake_driver(paramstyle: str = "qmark") -> SimpleNamespace:
    return SimpleNamespace(connect=Mock(side_effect=lambda **_: Mock()), paramstyle=paramstyle)


@pytest.fixture
def driver() -> SimpleNamespace:
    return fake_driver()


@pytest.fixture
def manager(driver: SimpleNamespace) -> ConnectionManager:
    main = DatasourceConfig("main", driver=driver, connection_parameters={"dsn": "main"}, pool_size=2)  # type: ignore[arg-type]
    audit = DatasourceConfig("audit", driver=fake_driver("numeric"))  # type: ignore[arg-type]
    return ConnectionManager([main, audit])


def test_get_connection_opens_pool_on_first_use(manager: ConnectionManager, driver: SimpleNamespace) -> None:
    connection = manager.get_connection("main")

    driver.connect.assert_called_once_with(dsn="main")
    assert manager.get_pool("main").checked_out() == 1
    manager.release(connection)
    assert manager.get_pool("main").checked_out() == 0


def test_unknown_datasource(manager: ConnectionManager) -> None:
    with pytest.raises(ImproperConfigurationError, match="Unknown datasource 'other'"):
        manager.get_connection("other")


def test_duplicate_datasource(manager: ConnectionManager) -> None:
    with pytest.raises(ImproperConfigurationError):
        manager.add_config(DatasourceConfig("main"))


def test_connection_context_manager(manager: ConnectionManager) -> None:
    """Test the connection goes back to its pool after the block."""
    with manager.connection("main") as connection:
        assert manager.get_pool("main").checked_out() == 1

    assert manager.get_pool("main").checked_out() == 0
    connection.rollback.assert_called_once_with()


def test_release_foreign_connection_closes_it(manager: ConnectionManager) -> None:
    stranger = Mock()

    manager.release(stranger)

    stranger.close.assert_called_once_with()


def test_parameter_style(manager: ConnectionManager) -> None:
    assert manager.parameter_style("main") is ParameterStyle.QMARK
    assert manager.parameter_style("audit") is ParameterStyle.NUMERIC
    assert manager.datasources == ["audit", "main"]


def test_close_pools(manager: ConnectionManager) -> None:
    """Test idle connections are closed and pools reopen on demand."""
    connection = manager.get_connection("main")
    manager.release(connection)
    pool = manager.get_pool("main")

    manager.close_pools()

    connection.close.assert_called_once_with()
    assert pool.is_closed
    assert manager.get_pool("main") is not pool


def test_from_properties(tmp_path: Path) -> None:
    path = tmp_path / "db.properties"
    path.write_text("pools=main\nurl.main=:memory:\n", encoding="utf-8")

    manager = ConnectionManager.from_properties(path)
    try:
        with manager.connection("main") as connection:
            assert connection.execute("select 1").fetchone() == (1,)
    finally:
        manager.close_pools()


def test_default_manager(manager: ConnectionManager) -> None:
    with pytest.raises(ImproperConfigurationError):
        get_connection_manager()

    set_connection_manager(manager)
    assert get_connection_manager() is manager

    manager.release(manager.get_connection("main"))
    pool = manager.get_pool("main")
    set_connection_manager(None)
    assert pool.is_closed


def test_exit_hook_registered_while_pools_open(manager: ConnectionManager) -> None:
    """Test the interpreter exit hook only holds managers with open pools."""
    with patch("sqlbind.connection.atexit") as mock_atexit:
        manager.get_pool("main")
        manager.get_pool("audit")
        mock_atexit.register.assert_called_once_with(manager.close_pools)

        manager.close_pools()
        mock_atexit.unregister.assert_called_once_with(manager.close_pools)


def test_new_manager_registers_no_exit_hook(driver: SimpleNamespace) -> None:
    with patch("sqlbind.connection.atexit") as mock_atexit:
        ConnectionManager([DatasourceConfig("main", driver=driver)])  # type: ignore[arg-type]

    mock_atexit.register.assert_not_called()
