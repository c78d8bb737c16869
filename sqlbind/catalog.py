"""Statement catalogs keyed by caller.

Each caller, usually a DAO class, owns a catalog document of named
statements. By default the document sits next to the module that defines the
class and is named after it, so ``LibraryDAO`` defined in ``app/dao.py`` reads
``app/LibraryDAO.sql`` (or ``app/LibraryDAO.xml``).

Example:
    ```python
    catalog = StatementCatalog()
    stmt = catalog.lookup(LibraryDAO, "getAllLibraries")
    stmt.bind_literal(ORDER_BY_CLAUSE_TOKEN, "name")
    cursor = stmt.execute_query(connection)
    ```

A catalog is loaded once, on the first lookup for its caller, and kept for
the lifetime of the :class:`StatementCatalog`.
"""

import threading
from collections.abc import Iterable, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Optional, Union

from sqlbind.core.parameters import ParameterStyle
from sqlbind.core.statement import SQLStatement, StatementInfo
from sqlbind.exceptions import CatalogLoadError, StatementNotFoundError
from sqlbind.loader import load_catalog
from sqlbind.utils.logging import CATALOG_LOGGER_NAME, get_logger
from sqlbind.utils.module_loader import module_directory

__all__ = (
    "CallerKey",
    "StatementCatalog",
    "default_resolver",
    "get_default_catalog",
    "lookup",
    "set_default_catalog",
)

logger = get_logger(CATALOG_LOGGER_NAME)

CallerKey = Union[type, str]
CATALOG_SUFFIXES = (".sql", ".xml")


def default_resolver(caller: CallerKey) -> Path:
    """Find the catalog document of a caller.

    Classes map to ``<ClassName>.sql`` or ``<ClassName>.xml`` in the directory
    of their module; strings are taken as paths.

    Raises:
        CatalogLoadError: The module of the class has no file on disk.

    Returns:
        The first existing candidate, or the ``.sql`` candidate when none exists.
    """
    if isinstance(caller, str):
        return Path(caller)
    try:
        directory = module_directory(caller)
    except TypeError as e:
        raise CatalogLoadError(caller.__qualname__, e) from e
    candidates = [directory / f"{caller.__name__}{suffix}" for suffix in CATALOG_SUFFIXES]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return candidates[0]


def _caller_key(caller: Any) -> CallerKey:
    if isinstance(caller, (type, str)):
        return caller
    return type(caller)


def _caller_name(key: CallerKey) -> str:
    return key if isinstance(key, str) else f"{key.__module__}.{key.__qualname__}"


class StatementCatalog:
    """Registry of statement catalogs, one per caller.

    Args:
        resolver: Maps a caller to the path of its catalog document.
        strict: Raise :class:`StatementNotFoundError` for unknown statement ids
            and :class:`CatalogLoadError` for unreadable catalogs, instead of
            returning None and logging a warning.
        style: Positional marker style of statements created by :meth:`lookup`.
        encoding: Text encoding of catalog documents.
    """

    __slots__ = ("_catalogs", "_encoding", "_lock", "_resolver", "_strict", "_style")

    def __init__(
        self,
        *,
        resolver: "Optional[Callable[[CallerKey], Union[str, Path]]]" = None,
        strict: bool = False,
        style: ParameterStyle = ParameterStyle.QMARK,
        encoding: str = "utf-8",
    ) -> None:
        self._catalogs: dict[CallerKey, Mapping[str, StatementInfo]] = {}
        self._lock = threading.Lock()
        self._resolver = resolver or default_resolver
        self._strict = strict
        self._style = ParameterStyle(style)
        self._encoding = encoding

    @property
    def strict(self) -> bool:
        return self._strict

    @property
    def style(self) -> ParameterStyle:
        return self._style

    def lookup(self, caller: Any, statement_id: str) -> "Optional[SQLStatement]":
        """Create a new statement for ``statement_id`` from the caller's catalog.

        Every call returns an independent :class:`SQLStatement`; only the
        template is shared.

        Args:
            caller: A class, an instance of it, or a catalog path.
            statement_id: Name of the statement in the catalog.

        Raises:
            StatementNotFoundError: The id is unknown and the catalog is strict.

        Returns:
            The statement, or None when the id is unknown.
        """
        info = self.get_info(caller, statement_id)
        if info is None:
            return None
        return SQLStatement(info, style=self._style)

    def get_info(self, caller: Any, statement_id: str) -> "Optional[StatementInfo]":
        """Template registered for ``statement_id``, or None."""
        key = _caller_key(caller)
        info = self._statements(key).get(statement_id)
        if info is None:
            if self._strict:
                raise StatementNotFoundError(statement_id, _caller_name(key))
            logger.warning("Statement '%s' not found in catalog for %s", statement_id, _caller_name(key))
        return info

    def datasource_for(self, caller: Any, statement_id: str) -> "Optional[str]":
        """Default datasource of a statement, or None."""
        info = self.get_info(caller, statement_id)
        return info.datasource if info is not None else None

    def statement_ids(self, caller: Any) -> "list[str]":
        """Sorted ids of all statements in the caller's catalog."""
        return sorted(self._statements(_caller_key(caller)))

    def is_loaded(self, caller: Any) -> bool:
        return _caller_key(caller) in self._catalogs

    def register(self, caller: Any, statements: "Union[Iterable[StatementInfo], Mapping[str, str]]") -> None:
        """Provide the catalog of a caller directly instead of loading it.

        Args:
            caller: A class, an instance of it, or any string key.
            statements: Templates, or a mapping of statement id to SQL.

        Raises:
            ValueError: The caller already has a catalog.
        """
        key = _caller_key(caller)
        if isinstance(statements, Mapping):
            infos = {name: StatementInfo(name, sql) for name, sql in statements.items()}
        else:
            infos = {info.statement_id: info for info in statements}
        with self._lock:
            if key in self._catalogs:
                msg = f"A catalog is already registered for {_caller_name(key)}"
                raise ValueError(msg)
            self._catalogs[key] = MappingProxyType(infos)

    def clear(self) -> None:
        """Forget all loaded catalogs."""
        with self._lock:
            self._catalogs.clear()

    def _statements(self, key: CallerKey) -> "Mapping[str, StatementInfo]":
        statements = self._catalogs.get(key)
        if statements is None:
            with self._lock:
                statements = self._catalogs.get(key)
                if statements is None:
                    statements = self._load(key)
                    self._catalogs[key] = statements
        return statements

    def _load(self, key: CallerKey) -> "Mapping[str, StatementInfo]":
        try:
            path = self._resolver(key)
            parsed = load_catalog(path, encoding=self._encoding)
        except CatalogLoadError as e:
            if self._strict:
                raise
            logger.warning(
                "Could not load statement catalog for %s: %s",
                _caller_name(key),
                e,
                extra={"extra_fields": {"caller": _caller_name(key), "error_type": type(e).__name__}},
            )
            return MappingProxyType({})
        logger.info("Loaded %d statements for %s from %s", len(parsed.statements), _caller_name(key), path)
        return MappingProxyType(dict(parsed.statements))


_default_catalog: Optional[StatementCatalog] = None
_default_catalog_lock = threading.Lock()


def get_default_catalog() -> StatementCatalog:
    """Get or create the process wide catalog."""
    global _default_catalog
    if _default_catalog is None:
        with _default_catalog_lock:
            if _default_catalog is None:
                _default_catalog = StatementCatalog()
    return _default_catalog


def set_default_catalog(catalog: "Optional[StatementCatalog]") -> None:
    """Replace the process wide catalog. ``None`` resets it to a fresh one on next use."""
    global _default_catalog
    with _default_catalog_lock:
        _default_catalog = catalog


def lookup(caller: Any, statement_id: str) -> "Optional[SQLStatement]":
    """Look up a statement in the process wide catalog."""
    return get_default_catalog().lookup(caller, statement_id)
