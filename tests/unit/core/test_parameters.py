"""Unit tests for literal substitution and placeholder rewriting."""

import pytest

from sqlbind.core.parameters import (
    ParameterStyle,
    find_placeholders,
    is_sequence_binding,
    rewrite_placeholders,
    substitute_literals,
)
from sqlbind.core.values import TypedValue
from sqlbind.exceptions import UnboundVariableError

TEMPLATE = "select * from T where a=:v and b=:v order by $ord"


@pytest.mark.parametrize(
    "sql",
    [
        "select 1",
        "select * from T where a = 'x:'",
        "select a:1 from dual",
        "select '::' from T",
        "",
    ],
)
def test_no_placeholders_is_identity(sql: str) -> None:
    """Test SQL without placeholders passes through unchanged."""
    result = rewrite_placeholders(sql)

    assert result.sql == sql
    assert result.names == ()


def test_single_scalar_placeholder() -> None:
    """Test one scalar placeholder becomes one marker."""
    result = rewrite_placeholders("select * from T where id = :x", {"x": TypedValue.of_int(1)})

    assert result.sql == "select * from T where id = ?"
    assert result.names == ("x",)


@pytest.mark.parametrize("count", [1, 2, 5])
def test_sequence_expands_to_markers(count: int) -> None:
    """Test a sequence of N values yields N comma joined markers and one name."""
    values = tuple(TypedValue.of_int(i) for i in range(count))
    result = rewrite_placeholders("id in (:ids)", {"ids": values})

    assert result.sql == f"id in ({','.join('?' * count)})"
    assert result.names == ("ids",)


def test_empty_sequence_emits_no_marker() -> None:
    result = rewrite_placeholders("id in (:ids)", {"ids": ()})

    assert result.sql == "id in ()"
    assert result.names == ("ids",)


def test_duplicate_names_each_recorded() -> None:
    """Test every occurrence gets its own entry in the name ordering."""
    result = rewrite_placeholders("a=:v and b=:w and c=:v", {"v": 1, "w": 2})

    assert result.sql == "a=? and b=? and c=?"
    assert result.names == ("v", "w", "v")


def test_trailing_placeholder_recorded() -> None:
    """Test a placeholder at the end of the text is closed."""
    result = rewrite_placeholders("select * from T where id=:id", {"id": 1})

    assert result.sql == "select * from T where id=?"
    assert result.names == ("id",)


def test_terminator_is_copied_and_never_starts_a_placeholder() -> None:
    """Test the character ending a placeholder is emitted as is, even a colon."""
    result = rewrite_placeholders(":a:b", {"a": 1})

    assert result.sql == "?:b"
    assert result.names == ("a",)


def test_cast_syntax_is_a_placeholder() -> None:
    """Test ``x::text`` reads ``text`` as a placeholder name."""
    assert find_placeholders("select x::text from T") == ("text",)


def test_placeholder_names_allow_digits_and_underscores() -> None:
    result = rewrite_placeholders("(:first_name1, :b2)", {"first_name1": "x", "b2": "y"})

    assert result.sql == "(?, ?)"
    assert result.names == ("first_name1", "b2")


def test_unbound_variable_raises() -> None:
    """Test rewriting fails on a placeholder without a binding."""
    with pytest.raises(UnboundVariableError) as exc_info:
        rewrite_placeholders("a=:v and b=:w", {"v": 1}, statement_id="q1")

    assert exc_info.value.variable == "w"
    assert exc_info.value.statement_id == "q1"
    assert "SQL ID: q1" in str(exc_info.value)


def test_discovery_without_bindings() -> None:
    """Test unbound names emit one marker when bindings are not required."""
    result = rewrite_placeholders("a=:v and b=:w", require_bindings=False)

    assert result.sql == "a=? and b=?"
    assert find_placeholders("a=:v and b=:w and c=:v") == ("v", "w", "v")


@pytest.mark.parametrize(
    ("style", "expected"),
    [
        (ParameterStyle.QMARK, "a=? and b in (?,?)"),
        (ParameterStyle.FORMAT, "a=%s and b in (%s,%s)"),
        (ParameterStyle.NUMERIC, "a=:1 and b in (:2,:3)"),
        (ParameterStyle.DOLLAR, "a=$1 and b in ($2,$3)"),
    ],
)
def test_marker_styles(style: ParameterStyle, expected: str) -> None:
    """Test numbered styles count positions across expanded sequences."""
    result = rewrite_placeholders("a=:v and b in (:ids)", {"v": 1, "ids": (1, 2)}, style=style)

    assert result.sql == expected


def test_substitute_literals_is_blind() -> None:
    """Test tokens are replaced everywhere, including comments and strings."""
    sql = "select $cols from T -- $cols\nwhere x = '$cols'"

    assert substitute_literals(sql, {"$cols": "a, b"}) == "select a, b from T -- a, b\nwhere x = 'a, b'"


def test_substitute_without_literals_is_identity() -> None:
    """Test an empty literal map does not change the rewrite result."""
    sql = "select * from T where id = :id"

    assert rewrite_placeholders(substitute_literals(sql, {}), {"id": 1}) == rewrite_placeholders(sql, {"id": 1})


def test_literals_may_introduce_placeholders() -> None:
    """Test placeholders inside a literal fragment are rewritten."""
    sql = substitute_literals("select * from T where $where", {"$where": "y = :y"})

    assert rewrite_placeholders(sql, {"y": 2}).sql == "select * from T where y = ?"
    with pytest.raises(UnboundVariableError):
        rewrite_placeholders(sql, {})


def test_scenario_scalar_binding() -> None:
    """Test a scalar bound to a name used twice."""
    sql = substitute_literals(TEMPLATE, {"$ord": "name"})
    result = rewrite_placeholders(sql, {"v": TypedValue.of_int(5)})

    assert result.sql == "select * from T where a=? and b=? order by name"
    assert result.names == ("v", "v")


def test_scenario_sequence_binding() -> None:
    """Test a sequence expands independently at each occurrence."""
    values = tuple(TypedValue.of_int(i) for i in (1, 2, 3))
    sql = substitute_literals(TEMPLATE, {"$ord": "name"})
    result = rewrite_placeholders(sql, {"v": values})

    assert result.sql == "select * from T where a=?,?,? and b=?,?,? order by name"


@pytest.mark.parametrize(
    ("value", "expected"),
    [([1], True), ((1,), True), ("abc", False), (b"abc", False), (1, False), ({1}, False)],
)
def test_is_sequence_binding(value: object, expected: bool) -> None:
    assert is_sequence_binding(value) is expected


def test_format_style_escapes_percent() -> None:
    """Test template percent signs are doubled for drivers that interpolate with %."""
    result = rewrite_placeholders(
        "select * from T where n like 'a%' and id = :id", {"id": 1}, style=ParameterStyle.FORMAT
    )

    assert result.sql == "select * from T where n like 'a%%' and id = %s"
    assert result.sql % ("x",) == "select * from T where n like 'a%' and id = x"


def test_format_style_escapes_percent_after_sequence() -> None:
    result = rewrite_placeholders("id in (:ids) and n like '%b%'", {"ids": (1, 2)}, style=ParameterStyle.FORMAT)

    assert result.sql == "id in (%s,%s) and n like '%%b%%'"


def test_format_style_without_markers_keeps_percent() -> None:
    """Test SQL executed without parameters is not escaped."""
    sql = "select * from T where n like 'a%'"

    assert rewrite_placeholders(sql, style=ParameterStyle.FORMAT).sql == sql


@pytest.mark.parametrize("style", [ParameterStyle.QMARK, ParameterStyle.NUMERIC, ParameterStyle.DOLLAR])
def test_other_styles_keep_percent(style: ParameterStyle) -> None:
    result = rewrite_placeholders("n like 'a%' and id = :id", {"id": 1}, style=style)

    assert result.sql == f"n like 'a%' and id = {style.marker(1)}"
