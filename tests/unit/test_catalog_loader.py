"""Unit tests for catalog document parsing and loading."""

import logging
from pathlib import Path

import pytest

from sqlbind.exceptions import CatalogLoadError
from sqlbind.loader import CatalogFile, load_catalog, parse_sql_catalog, parse_xml_catalog

XML_CATALOG = """<?xml version="1.0"?>
<statements datasource="main">
    <statement name="getAllLibraries">
        <![CDATA[
            select *
              from LIBRARY
             order by $orderclause
        ]]>
    </statement>
    <statement name="getAudit" datasource="audit">
        <![CDATA[ select * from AUDIT where id = :id ]]>
    </statement>
</statements>
"""

SQL_CATALOG = """-- datasource: main

-- name: getAllLibraries
-- every library
select *
  from LIBRARY
 order by $orderclause;

-- name: getAudit
-- datasource: audit
select * from AUDIT where id = :id
"""


def test_parse_xml_catalog() -> None:
    """Test XML statements, datasources and normalised text."""
    parsed = parse_xml_catalog(XML_CATALOG)

    assert parsed.default_datasource == "main"
    assert set(parsed.statements) == {"getAllLibraries", "getAudit"}
    libraries = parsed.statements["getAllLibraries"]
    assert libraries.sql == "select * from LIBRARY order by $orderclause"
    assert libraries.datasource == "main"
    assert parsed.statements["getAudit"].datasource == "audit"


def test_parse_xml_skips_unnamed_statements(caplog: pytest.LogCaptureFixture) -> None:
    """Test statements without a name are logged and skipped."""
    content = '<statements><statement>select 1</statement><statement name="ok">select 2</statement></statements>'

    with caplog.at_level(logging.INFO, logger="sqlbind.catalog"):
        parsed = parse_xml_catalog(content, "unnamed.xml")

    assert list(parsed.statements) == ["ok"]
    assert parsed.default_datasource is None
    assert any(r.levelno == logging.ERROR and "without a name" in r.getMessage() for r in caplog.records)
    assert any(r.levelno == logging.INFO and "No default datasource" in r.getMessage() for r in caplog.records)


@pytest.mark.parametrize("content", ["<statements><statement", "<queries/>"])
def test_parse_xml_invalid(content: str) -> None:
    with pytest.raises(CatalogLoadError):
        parse_xml_catalog(content, "bad.xml")


def test_parse_sql_catalog() -> None:
    """Test named SQL statements with file and statement datasources."""
    parsed = parse_sql_catalog(SQL_CATALOG)

    assert parsed.default_datasource == "main"
    libraries = parsed.statements["getAllLibraries"]
    assert libraries.sql == "select *\n  from LIBRARY\n order by $orderclause"
    assert libraries.datasource == "main"
    audit = parsed.statements["getAudit"]
    assert audit.sql == "select * from AUDIT where id = :id"
    assert audit.datasource == "audit"


def test_parse_sql_duplicate_names() -> None:
    content = "-- name: a\nselect 1;\n-- name: a\nselect 2;\n"

    with pytest.raises(CatalogLoadError, match="Duplicate statement name"):
        parse_sql_catalog(content, "dup.sql")


def test_parse_sql_without_statements() -> None:
    with pytest.raises(CatalogLoadError, match="No named SQL statements"):
        parse_sql_catalog("select 1;", "plain.sql")


def test_catalog_file_checksum() -> None:
    """Test identical content yields identical checksums."""
    first = CatalogFile("select 1", "a.sql")
    second = CatalogFile("select 1", "b.sql")

    assert first.checksum == second.checksum
    assert len(first.checksum) == 32
    assert CatalogFile("select 2", "a.sql").checksum != first.checksum


@pytest.mark.parametrize(
    ("filename", "content"),
    [("LibraryDAO.xml", XML_CATALOG), ("LibraryDAO.sql", SQL_CATALOG), ("LibraryDAO.catalog", XML_CATALOG)],
)
def test_load_catalog_detects_format(tmp_path: Path, filename: str, content: str) -> None:
    """Test the format follows the suffix or a leading ``<``."""
    path = tmp_path / filename
    path.write_text(content, encoding="utf-8")

    parsed = load_catalog(path)

    assert set(parsed.statements) == {"getAllLibraries", "getAudit"}
    assert parsed.source is not None
    assert parsed.source.path == str(path)


def test_load_catalog_missing_file(tmp_path: Path) -> None:
    with pytest.raises(CatalogLoadError) as exc_info:
        load_catalog(tmp_path / "missing.sql")

    assert exc_info.value.path == str(tmp_path / "missing.sql")
    assert isinstance(exc_info.value.__cause__, OSError)
