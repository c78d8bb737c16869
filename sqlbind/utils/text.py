"""General text utility functions."""

from collections.abc import Iterable
from typing import Final

__all__ = (
    "TRUE_VALUES",
    "join_values",
    "normalize_whitespace",
    "to_bool",
)

TRUE_VALUES: Final = frozenset({"true", "t", "yes", "y", "on", "1"})


def to_bool(value: str) -> bool:
    """Convert a string to a boolean.

    Anything other than one of ``TRUE_VALUES`` (case-insensitive) is ``False``.

    Args:
        value: The string to convert.

    Returns:
        The boolean value.
    """
    return value.strip().lower() in TRUE_VALUES


def join_values(values: "Iterable[object]", separator: str = ", ") -> str:
    """Join the string form of each value."""
    return separator.join(str(v) for v in values)


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs to a single space and trim both ends."""
    return " ".join(text.split())
