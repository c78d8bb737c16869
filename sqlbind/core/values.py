"""Typed bind values.

A :class:`TypedValue` carries one scalar together with the kind it was bound
as, so that every bind is unambiguous: ``5`` bound as a LONG is never read back
as a DOUBLE, and reading it with the wrong accessor fails instead of coercing.
"""

from datetime import date, datetime, time
from enum import Enum
from typing import Any, Final, Union

from mypy_extensions import mypyc_attr

from sqlbind.exceptions import NullBindError, TypeMismatchError
from sqlbind.utils.dates import DB_DATE, DB_DATE_TIME, DB_TIME, date_to_string, string_to_date
from sqlbind.utils.text import to_bool

__all__ = (
    "MAX_32BIT_INT",
    "MIN_32BIT_INT",
    "DateType",
    "TypedValue",
    "ValueKind",
)

MAX_32BIT_INT: Final[int] = 2147483647
MIN_32BIT_INT: Final[int] = -2147483648


class ValueKind(str, Enum):
    """Kind tag of a :class:`TypedValue`."""

    STRING = "string"
    INT = "int"
    LONG = "long"
    DOUBLE = "double"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    OBJECT = "object"

    def __str__(self) -> str:
        return self.name


class DateType(str, Enum):
    """Which part of a date is bound by ``SQLStatement.bind_date``."""

    DATE_ONLY = "date_only"
    TIME_ONLY = "time_only"
    DATE_AND_TIME = "date_and_time"


DATE_KINDS: Final = frozenset({ValueKind.DATE, ValueKind.TIME, ValueKind.DATETIME})
BINDABLE_KINDS: Final = frozenset(ValueKind) - {ValueKind.OBJECT}

_DATE_FORMATS: Final = {ValueKind.DATE: DB_DATE, ValueKind.TIME: DB_TIME, ValueKind.DATETIME: DB_DATE_TIME}
_DATE_TYPE_FORMATS: Final = {
    DateType.DATE_ONLY: DB_DATE,
    DateType.TIME_ONLY: DB_TIME,
    DateType.DATE_AND_TIME: DB_DATE_TIME,
}
_DATE_TYPE_KINDS: Final = {
    DateType.DATE_ONLY: ValueKind.DATE,
    DateType.TIME_ONLY: ValueKind.TIME,
    DateType.DATE_AND_TIME: ValueKind.DATETIME,
}
_EPOCH_DATE: Final = date(1900, 1, 1)


def _as_datetime(value: "Union[date, datetime, time]") -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    if isinstance(value, time):
        return datetime.combine(_EPOCH_DATE, value)
    msg = f"Expected a date, datetime or time, got {type(value).__name__}"
    raise TypeError(msg)


@mypyc_attr(allow_interpreted_subclasses=False)
class TypedValue:
    """Immutable tagged scalar used as the unit of bind data.

    Build instances with the ``of_*`` constructors, :meth:`of` (kind inferred
    from the Python type) or :meth:`from_string` (text parsed as a kind).
    """

    __slots__ = ("_kind", "_value")

    _kind: ValueKind
    _value: Any

    def __init__(self, kind: ValueKind, value: Any) -> None:
        if value is None:
            raise NullBindError
        object.__setattr__(self, "_kind", kind)
        object.__setattr__(self, "_value", value)

    def __setattr__(self, name: str, value: Any) -> None:
        msg = f"{type(self).__name__} is immutable"
        raise AttributeError(msg)

    @property
    def kind(self) -> ValueKind:
        return self._kind

    @property
    def value(self) -> Any:
        return self._value

    # -- constructors --

    @classmethod
    def of_string(cls, value: str) -> "TypedValue":
        return cls(ValueKind.STRING, _check(value, str, ValueKind.STRING))

    @classmethod
    def of_int(cls, value: int) -> "TypedValue":
        """Create an INT value.

        Raises:
            ValueError: The value does not fit a signed 32 bit integer.
        """
        _check(value, int, ValueKind.INT)
        if not MIN_32BIT_INT <= value <= MAX_32BIT_INT:
            msg = f"{value} is out of range for INT, use of_long"
            raise ValueError(msg)
        return cls(ValueKind.INT, int(value))

    @classmethod
    def of_long(cls, value: int) -> "TypedValue":
        return cls(ValueKind.LONG, int(_check(value, int, ValueKind.LONG)))

    @classmethod
    def of_double(cls, value: float) -> "TypedValue":
        return cls(ValueKind.DOUBLE, float(_check(value, (int, float), ValueKind.DOUBLE)))

    @classmethod
    def of_float(cls, value: float) -> "TypedValue":
        return cls(ValueKind.FLOAT, float(_check(value, (int, float), ValueKind.FLOAT)))

    @classmethod
    def of_boolean(cls, value: bool) -> "TypedValue":
        if not isinstance(value, bool):
            raise TypeMismatchError(ValueKind.BOOLEAN.name, type(value).__name__)
        return cls(ValueKind.BOOLEAN, value)

    @classmethod
    def of_date(
        cls, value: "Union[date, datetime, time]", kind: ValueKind = ValueKind.DATETIME
    ) -> "TypedValue":
        """Create a DATE, TIME or DATETIME value.

        Args:
            value: The date, datetime or time to hold.
            kind: One of the three date kinds.

        Raises:
            ValueError: ``kind`` is not a date kind.

        Returns:
            The typed value holding a :class:`datetime.datetime`.
        """
        if kind not in DATE_KINDS:
            msg = f"{kind} is not a date kind"
            raise ValueError(msg)
        if value is None:
            raise NullBindError
        return cls(kind, _as_datetime(value))

    @classmethod
    def of_object(cls, value: Any) -> "TypedValue":
        return cls(ValueKind.OBJECT, value)

    @classmethod
    def of(cls, value: Any) -> "TypedValue":
        """Create a typed value, inferring the kind from the Python type.

        ``bool`` maps to BOOLEAN, ``int`` to INT when it fits 32 bits and LONG
        otherwise, ``float`` to DOUBLE, ``str`` to STRING, dates and times to
        DATE, TIME or DATETIME. Existing typed values are returned unchanged and
        anything else is held as OBJECT.

        Raises:
            NullBindError: ``value`` is None.
        """
        if value is None:
            raise NullBindError
        if isinstance(value, TypedValue):
            return value
        if isinstance(value, bool):
            return cls(ValueKind.BOOLEAN, value)
        if isinstance(value, int):
            if MIN_32BIT_INT <= value <= MAX_32BIT_INT:
                return cls(ValueKind.INT, value)
            return cls(ValueKind.LONG, value)
        if isinstance(value, float):
            return cls(ValueKind.DOUBLE, value)
        if isinstance(value, str):
            return cls(ValueKind.STRING, value)
        if isinstance(value, datetime):
            return cls(ValueKind.DATETIME, value)
        if isinstance(value, date):
            return cls(ValueKind.DATE, _as_datetime(value))
        if isinstance(value, time):
            return cls(ValueKind.TIME, _as_datetime(value))
        return cls(ValueKind.OBJECT, value)

    @classmethod
    def from_string(cls, kind: ValueKind, text: str) -> "TypedValue":
        """Parse ``text`` as a value of ``kind``.

        Dates use the DB formats; when a date does not parse, the raw text is
        kept as a STRING value instead.

        Raises:
            ValueError: ``text`` is not a valid number for a numeric kind.
            NullBindError: ``text`` is None.
        """
        if text is None:
            raise NullBindError
        if kind in DATE_KINDS:
            try:
                return cls(kind, string_to_date(text, _DATE_FORMATS[kind]))
            except ValueError:
                return cls(ValueKind.STRING, text)
        if kind is ValueKind.INT:
            return cls.of_int(int(text.strip()))
        if kind is ValueKind.LONG:
            return cls(ValueKind.LONG, int(text.strip()))
        if kind is ValueKind.DOUBLE:
            return cls(ValueKind.DOUBLE, float(text))
        if kind is ValueKind.FLOAT:
            return cls(ValueKind.FLOAT, float(text))
        if kind is ValueKind.BOOLEAN:
            return cls(ValueKind.BOOLEAN, to_bool(text))
        return cls(ValueKind.STRING, text)

    @classmethod
    def from_date_type(cls, value: "Union[date, datetime, time]", date_type: DateType) -> "TypedValue":
        """Format a date for binding as a STRING in the DB format of ``date_type``."""
        if value is None:
            raise NullBindError
        return cls(ValueKind.STRING, date_to_string(value, _DATE_TYPE_FORMATS[DateType(date_type)]))

    # -- accessors --

    def _expect(self, *kinds: ValueKind) -> Any:
        if self._kind not in kinds:
            raise TypeMismatchError(" or ".join(k.name for k in kinds), self._kind.name)
        return self._value

    def as_int(self) -> int:
        return self._expect(ValueKind.INT)  # type: ignore[no-any-return]

    def as_long(self) -> int:
        return self._expect(ValueKind.LONG)  # type: ignore[no-any-return]

    def as_double(self) -> float:
        return self._expect(ValueKind.DOUBLE)  # type: ignore[no-any-return]

    def as_float(self) -> float:
        return self._expect(ValueKind.FLOAT)  # type: ignore[no-any-return]

    def as_boolean(self) -> bool:
        return self._expect(ValueKind.BOOLEAN)  # type: ignore[no-any-return]

    def as_date(self) -> datetime:
        return self._expect(ValueKind.DATE, ValueKind.TIME, ValueKind.DATETIME)  # type: ignore[no-any-return]

    def as_object(self) -> Any:
        return self._expect(ValueKind.OBJECT)

    def as_string(self) -> str:
        """Textual form of the value, available for every kind."""
        if self._kind in DATE_KINDS:
            return date_to_string(self._value, _DATE_FORMATS[self._kind])
        if self._kind is ValueKind.BOOLEAN:
            return "true" if self._value else "false"
        return str(self._value)

    def to_parameter(self) -> Any:
        """Native DB-API parameter for this value.

        Date kinds are sent in their DB text format.

        Raises:
            TypeMismatchError: The value is an OBJECT, which cannot be bound.
        """
        kind = self._kind
        if kind is ValueKind.STRING:
            return self._value
        if kind is ValueKind.INT:
            return self.as_int()
        if kind is ValueKind.LONG:
            return self.as_long()
        if kind is ValueKind.DOUBLE:
            return self.as_double()
        if kind is ValueKind.FLOAT:
            return self.as_float()
        if kind is ValueKind.BOOLEAN:
            return self.as_boolean()
        if kind in DATE_KINDS:
            return self.as_string()
        raise TypeMismatchError(", ".join(sorted(k.name for k in BINDABLE_KINDS)), kind.name)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TypedValue):
            return NotImplemented
        return self._kind is other._kind and self._value == other._value

    def __hash__(self) -> int:
        try:
            return hash((self._kind, self._value))
        except TypeError:
            return hash((self._kind, repr(self._value)))

    def __str__(self) -> str:
        return self.as_string()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self._kind.name}, value={self._value!r})"


def _check(value: Any, expected: "Union[type, tuple[type, ...]]", kind: ValueKind) -> Any:
    if value is None:
        raise NullBindError
    if isinstance(value, bool) and kind is not ValueKind.BOOLEAN:
        raise TypeMismatchError(kind.name, ValueKind.BOOLEAN.name)
    if not isinstance(value, expected):
        raise TypeMismatchError(kind.name, type(value).__name__)
    return value
