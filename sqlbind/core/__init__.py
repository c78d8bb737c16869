"""Statement core: typed values, placeholder rewriting and executable statements.

- values.py: TypedValue, the kind-tagged bind value
- parameters.py: literal substitution and ``:name`` to positional marker rewriting
- statement.py: SQLStatement with its per-connection prepared cache
"""

from sqlbind.core.parameters import (
    ParameterStyle,
    RewrittenSQL,
    find_placeholders,
    rewrite_placeholders,
    substitute_literals,
)
from sqlbind.core.statement import (
    FROM_CLAUSE_TOKEN,
    JOIN_CLAUSE_TOKEN,
    ORDER_BY_CLAUSE_TOKEN,
    SELECT_CLAUSE_TOKEN,
    WHERE_CLAUSE_TOKEN,
    SQLStatement,
    StatementInfo,
)
from sqlbind.core.values import DateType, TypedValue, ValueKind

__all__ = (
    "FROM_CLAUSE_TOKEN",
    "JOIN_CLAUSE_TOKEN",
    "ORDER_BY_CLAUSE_TOKEN",
    "SELECT_CLAUSE_TOKEN",
    "WHERE_CLAUSE_TOKEN",
    "DateType",
    "ParameterStyle",
    "RewrittenSQL",
    "SQLStatement",
    "StatementInfo",
    "TypedValue",
    "ValueKind",
    "find_placeholders",
    "rewrite_placeholders",
    "substitute_literals",
)
