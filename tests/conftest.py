from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path
from typing import Any
from unittest.mock import Mock

import pytest

from sqlbind import catalog, connection
from sqlbind.utils.logging import ROOT_LOGGER_NAME

here = Path(__file__).parent
root_path = here.parent


@pytest.fixture(autouse=True)
def reset_globals() -> Generator[None, None, None]:
    """Give every test a fresh default catalog and no default connection manager."""
    catalog.set_default_catalog(None)
    connection.set_connection_manager(None)
    yield
    catalog.set_default_catalog(None)
    connection.set_connection_manager(None)


@pytest.fixture(autouse=True)
def restore_sqlbind_logger() -> Generator[None, None, None]:
    """Undo ``configure_logging`` so caplog keeps seeing sqlbind records."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def mock_connection() -> Mock:
    """DB-API connection whose ``cursor()`` returns a new Mock cursor per call."""
    conn = Mock(name="connection")

    def make_cursor(**_: Any) -> Mock:
        cursor = Mock(name="cursor")
        cursor.rowcount = 1
        return cursor

    conn.cursor.side_effect = make_cursor
    return conn
