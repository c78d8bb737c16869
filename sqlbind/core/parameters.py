"""Named placeholder rewriting.

Templates use ``:name`` placeholders and ``$token`` literal sites. Before a
template reaches the driver, literal sites are replaced with their text
(:func:`substitute_literals`) and every placeholder is replaced with the
driver's positional marker (:func:`rewrite_placeholders`). A placeholder bound
to a sequence of N values becomes N markers joined by commas.

Example:
    ```python
    rewritten = rewrite_placeholders(
        "select * from T where a in (:ids) and b = :b",
        {"ids": [1, 2, 3], "b": "x"},
    )
    rewritten.sql  # "select * from T where a in (?,?,?) and b = ?"
    rewritten.names  # ("ids", "b")
    ```
"""

from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any, Final, NamedTuple, Optional

from sqlbind.exceptions import UnboundVariableError

__all__ = (
    "ParameterStyle",
    "RewrittenSQL",
    "find_placeholders",
    "is_sequence_binding",
    "rewrite_placeholders",
    "substitute_literals",
)

PLACEHOLDER_PREFIX: Final = ":"


class ParameterStyle(str, Enum):
    """Positional marker emitted for each placeholder (DB-API ``paramstyle``)."""

    QMARK = "qmark"
    FORMAT = "format"
    NUMERIC = "numeric"
    DOLLAR = "dollar"

    def __str__(self) -> str:
        return self.value

    def marker(self, position: int) -> str:
        """Marker text for the 1-based ``position``."""
        if self is ParameterStyle.QMARK:
            return "?"
        if self is ParameterStyle.FORMAT:
            return "%s"
        if self is ParameterStyle.NUMERIC:
            return f":{position}"
        return f"${position}"


class RewrittenSQL(NamedTuple):
    """Result of :func:`rewrite_placeholders`."""

    sql: str
    """SQL with positional markers."""
    names: "tuple[str, ...]"
    """Placeholder names in the order they appear, duplicates preserved."""


class _ScanState(Enum):
    SCANNING = "scanning"
    IN_PLACEHOLDER = "in_placeholder"


def is_sequence_binding(value: Any) -> bool:
    """Whether a binding expands to one marker per element."""
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def _is_name_char(char: str) -> bool:
    return char.isalnum() or char == "_"


def substitute_literals(sql: str, literals: "Optional[Mapping[str, Any]]") -> str:
    """Replace every occurrence of each literal token with its text.

    This is a blind text replacement, so tokens inside comments or string
    literals are replaced too. Replacements are applied in mapping order.

    Args:
        sql: The template text.
        literals: Mapping of token (e.g. ``$orderclause``) to replacement text.

    Returns:
        The text with all tokens replaced.
    """
    if not literals:
        return sql
    for token, value in literals.items():
        if token:
            sql = sql.replace(token, str(value))
    return sql


def rewrite_placeholders(
    sql: str,
    bindings: "Optional[Mapping[str, Any]]" = None,
    *,
    style: ParameterStyle = ParameterStyle.QMARK,
    require_bindings: bool = True,
    statement_id: "Optional[str]" = None,
) -> RewrittenSQL:
    """Replace ``:name`` placeholders with positional markers.

    A placeholder starts at a colon directly followed by a letter and runs over
    letters, digits and underscores. The character that ends it is copied
    through unchanged and never starts another placeholder, so ``:a:b`` yields
    one marker followed by ``:b``. A colon followed by a digit (``a:1``) is left
    alone, but a PostgreSQL cast such as ``x::text`` is read as a placeholder
    named ``text``; write ``CAST(x AS text)`` instead.

    In ``FORMAT`` style the driver interpolates the SQL with ``%`` whenever
    parameters are passed, so every ``%`` of the template is doubled once at
    least one marker is emitted. Without markers the text is left as is.

    Args:
        sql: SQL text with named placeholders.
        bindings: Bound values by name. Sequence values (other than strings)
            expand to one marker per element.
        style: The positional marker style of the target driver.
        require_bindings: When False, unbound names emit a single marker
            instead of failing, which allows discovering names before binding.
        statement_id: Statement id reported in errors.

    Raises:
        UnboundVariableError: A placeholder has no binding and
            ``require_bindings`` is True.

    Returns:
        The rewritten SQL and the placeholder names in marker order.
    """
    bindings = bindings or {}
    output: list[str] = []
    names: list[str] = []
    name_chars: list[str] = []
    state = _ScanState.SCANNING
    position = 0

    def close_placeholder() -> None:
        nonlocal position
        name = "".join(name_chars)
        name_chars.clear()
        names.append(name)
        if name in bindings:
            binding = bindings[name]
            count = len(binding) if is_sequence_binding(binding) else 1
        elif require_bindings:
            raise UnboundVariableError(name, statement_id=statement_id, sql=sql)
        else:
            count = 1
        markers = []
        for _ in range(count):
            position += 1
            markers.append(style.marker(position))
        output.append(",".join(markers))

    length = len(sql)
    for index, char in enumerate(sql):
        if state is _ScanState.IN_PLACEHOLDER:
            if _is_name_char(char):
                name_chars.append(char)
                continue
            # the terminator is copied as is, even when it is another colon
            close_placeholder()
            state = _ScanState.SCANNING
            output.append(char)
            continue
        if char == PLACEHOLDER_PREFIX and index + 1 < length and sql[index + 1].isalpha():
            state = _ScanState.IN_PLACEHOLDER
            continue
        output.append(char)

    if state is _ScanState.IN_PLACEHOLDER:
        close_placeholder()

    if style is ParameterStyle.FORMAT and position:
        # template text is copied one character per chunk; markers are never a bare "%"
        return RewrittenSQL("".join("%%" if chunk == "%" else chunk for chunk in output), tuple(names))
    return RewrittenSQL("".join(output), tuple(names))


def find_placeholders(sql: str) -> "tuple[str, ...]":
    """Placeholder names of ``sql`` in order of appearance, duplicates preserved."""
    return rewrite_placeholders(sql, require_bindings=False).names
