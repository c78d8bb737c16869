"""Database date and time text formats.

Dates are exchanged with the database as plain strings:

* date only: ``YYYYMMDD``
* time only: ``hhmmss`` (24 hour clock)
* date and time: ``YYYYMMDDhhmmss``
"""

from datetime import date, datetime, time
from typing import Final, Union

__all__ = (
    "DB_DATE",
    "DB_DATE_TIME",
    "DB_TIME",
    "date_to_string",
    "string_to_date",
)

DB_DATE: Final[str] = "%Y%m%d"
DB_TIME: Final[str] = "%H%M%S"
DB_DATE_TIME: Final[str] = "%Y%m%d%H%M%S"

_FORMAT_LENGTHS: Final = {DB_DATE: 8, DB_TIME: 6, DB_DATE_TIME: 14}


def date_to_string(value: "Union[date, datetime, time]", fmt: str) -> str:
    """Format a date, datetime or time with one of the DB formats.

    Args:
        value: The value to format. A plain ``date`` has a midnight time part,
            a plain ``time`` has no date part and only supports ``DB_TIME``.
        fmt: The strftime format.

    Raises:
        ValueError: A ``time`` was formatted with a format that needs a date.

    Returns:
        The formatted string.
    """
    if isinstance(value, time) and fmt != DB_TIME:
        msg = f"Cannot format a time of day with {fmt!r}"
        raise ValueError(msg)
    return value.strftime(fmt)


def string_to_date(value: str, fmt: str) -> datetime:
    """Parse a DB formatted string.

    The string must have exactly the length of the format, so ``"2024011"``
    is not accepted as a date.

    Raises:
        ValueError: The string does not match the format.
    """
    expected = _FORMAT_LENGTHS.get(fmt)
    text = value.strip()
    if expected is not None and (len(text) != expected or not text.isdigit()):
        msg = f"{value!r} does not match format {fmt!r}"
        raise ValueError(msg)
    return datetime.strptime(text, fmt)  # noqa: DTZ007
