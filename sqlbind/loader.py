"""Statement catalog loading.

A catalog is a document of named SQL statements, each with an optional
datasource, plus an optional catalog wide default datasource. Two formats are
understood.

XML catalogs::

    <statements datasource="main">
        <statement name="getAllLibraries">
            <![CDATA[ select * from LIBRARY order by $orderclause ]]>
        </statement>
        <statement name="getAudit" datasource="audit">
            <![CDATA[ select * from AUDIT where id = :id ]]>
        </statement>
    </statements>

SQL catalogs with aiosql-style named statements::

    -- datasource: main

    -- name: getAllLibraries
    select * from LIBRARY order by $orderclause;

    -- name: getAudit
    -- datasource: audit
    select * from AUDIT where id = :id
"""

import hashlib
import re
import time
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from sqlbind.core.statement import StatementInfo
from sqlbind.exceptions import CatalogLoadError
from sqlbind.utils.logging import CATALOG_LOGGER_NAME, get_logger
from sqlbind.utils.text import normalize_whitespace

__all__ = (
    "CatalogFile",
    "ParsedCatalog",
    "load_catalog",
    "parse_sql_catalog",
    "parse_xml_catalog",
)

logger = get_logger(CATALOG_LOGGER_NAME)

# Matches: -- name: statement_id
STATEMENT_NAME_PATTERN = re.compile(r"^\s*--\s*name\s*:\s*([\w$.-]+)\s*$", re.MULTILINE | re.IGNORECASE)

# Matches: -- datasource: datasource_name
DATASOURCE_PATTERN = re.compile(r"^\s*--\s*datasource\s*:\s*(?P<datasource>[\w.-]+)\s*$", re.IGNORECASE)

XML_ROOT_TAG = "statements"
XML_STATEMENT_TAG = "statement"
XML_SUFFIXES = frozenset({".xml"})


@dataclass
class CatalogFile:
    """A loaded catalog document with metadata."""

    content: str
    """The raw document content."""

    path: str
    """Path the document was loaded from."""

    checksum: str = field(init=False)
    """MD5 checksum of the content."""

    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    """Timestamp when the document was loaded."""

    def __post_init__(self) -> None:
        """Calculate checksum after initialization."""
        self.checksum = hashlib.md5(self.content.encode(), usedforsecurity=False).hexdigest()


@dataclass
class ParsedCatalog:
    """Statements parsed from one catalog document."""

    statements: "dict[str, StatementInfo]" = field(default_factory=dict)
    default_datasource: "Optional[str]" = None
    source: "Optional[CatalogFile]" = None


def _strip_leading_comments(sql_text: str) -> str:
    """Remove leading comment lines from a SQL string."""
    lines = sql_text.strip().split("\n")
    for i, line in enumerate(lines):
        if line.strip() and not line.strip().startswith("--"):
            return "\n".join(lines[i:]).strip()
    return ""


def _strip_terminator(sql_text: str) -> str:
    return sql_text[:-1].rstrip() if sql_text.endswith(";") else sql_text


def parse_xml_catalog(content: str, path: str = "<string>") -> ParsedCatalog:
    """Parse an XML catalog.

    Statement text is whitespace normalised. Statements without a name are
    logged and skipped.

    Args:
        content: The XML document.
        path: Source path for error reporting.

    Raises:
        CatalogLoadError: The document is not well formed or has the wrong root.

    Returns:
        The parsed catalog.
    """
    try:
        root = ET.fromstring(content)  # noqa: S314
    except ET.ParseError as e:
        raise CatalogLoadError(path, e) from e
    if root.tag != XML_ROOT_TAG:
        raise CatalogLoadError(path, ValueError(f"Root element must be <{XML_ROOT_TAG}>, found <{root.tag}>"))

    default_datasource = root.get("datasource")
    if default_datasource is None:
        logger.info("No default datasource given for %s.", path)

    statements: dict[str, StatementInfo] = {}
    for item in root.findall(XML_STATEMENT_TAG):
        name = item.get("name")
        if not name:
            logger.error("The file %s contains statements without a name.", path)
            continue
        datasource = item.get("datasource") or default_datasource
        statements[name] = StatementInfo(name, normalize_whitespace("".join(item.itertext())), datasource)

    return ParsedCatalog(statements=statements, default_datasource=default_datasource)


def parse_sql_catalog(content: str, path: str = "<string>") -> ParsedCatalog:
    """Parse a catalog of ``-- name:`` statements.

    A ``-- datasource:`` line directly after a name applies to that statement;
    one before the first name is the catalog default. A trailing ``;`` is
    removed from each statement.

    Args:
        content: The SQL document.
        path: Source path for error reporting.

    Raises:
        CatalogLoadError: No named statements were found, or a name is duplicated.

    Returns:
        The parsed catalog.
    """
    name_matches = list(STATEMENT_NAME_PATTERN.finditer(content))
    if not name_matches:
        raise CatalogLoadError(path, ValueError("No named SQL statements found (-- name: statement_id)"))

    default_datasource = None
    for line in content[: name_matches[0].start()].splitlines():
        datasource_match = DATASOURCE_PATTERN.match(line)
        if datasource_match:
            default_datasource = datasource_match.group("datasource")
    if default_datasource is None:
        logger.info("No default datasource given for %s.", path)

    statements: dict[str, StatementInfo] = {}
    for i, match in enumerate(name_matches):
        name = match.group(1).strip()
        start_pos = match.end()
        end_pos = name_matches[i + 1].start() if i + 1 < len(name_matches) else len(content)
        section = content[start_pos:end_pos].strip()
        if not section:
            continue

        datasource = default_datasource
        section_lines = [line for line in section.split("\n") if line.strip()]
        datasource_match = DATASOURCE_PATTERN.match(section_lines[0])
        if datasource_match:
            datasource = datasource_match.group("datasource")
            section = "\n".join(section_lines[1:])

        sql = _strip_terminator(_strip_leading_comments(section))
        if not sql:
            continue
        if name in statements:
            raise CatalogLoadError(path, ValueError(f"Duplicate statement name: {name}"))
        statements[name] = StatementInfo(name, sql, datasource)

    return ParsedCatalog(statements=statements, default_datasource=default_datasource)


def _is_xml(path: Path, content: str) -> bool:
    if path.suffix.lower() in XML_SUFFIXES:
        return True
    return content.lstrip().startswith("<")


def load_catalog(path: "Union[str, Path]", *, encoding: str = "utf-8") -> ParsedCatalog:
    """Read and parse a catalog document.

    The format is chosen from the ``.xml`` suffix, or from a leading ``<``.

    Args:
        path: The document path.
        encoding: Text encoding of the document.

    Raises:
        CatalogLoadError: The document cannot be read or parsed.

    Returns:
        The parsed catalog.
    """
    path_obj = Path(path)
    start_time = time.perf_counter()
    try:
        content = path_obj.read_text(encoding=encoding)
    except (OSError, UnicodeDecodeError) as e:
        raise CatalogLoadError(str(path), e) from e

    catalog_file = CatalogFile(content=content, path=str(path_obj))
    if _is_xml(path_obj, content):
        parsed = parse_xml_catalog(content, str(path_obj))
    else:
        parsed = parse_sql_catalog(content, str(path_obj))
    parsed.source = catalog_file

    logger.debug(
        "Loaded %d statements from %s in %.3fms",
        len(parsed.statements),
        path_obj,
        (time.perf_counter() - start_time) * 1000,
        extra={"extra_fields": {"path": str(path_obj), "statement_count": len(parsed.statements)}},
    )
    return parsed
