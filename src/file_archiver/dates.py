"""
Date arithmetic for symbolic date parameters.

A date parameter is a short string applied to one component (scope) of a
reference datetime:

- ``""``                    leave the component untouched
- ``"2019"`` / ``"3"``      set the component to that value
- ``"+2"`` / ``"-1"``       add that many units
- ``"Previous"``/``"Next"`` add -1 / +1 units
- ``"First"``/``"Last"``    set the smallest / largest valid value
- ``"March"``               (month scope) set the month
- ``"NextMarch"``           (month scope) move forward to the next March
- ``"PreviousMarch"``       (month scope) move back to the previous March
- ``"Friday"``              (day scope) move to Friday of the current week
- ``"NextFriday"``          (day scope) move forward to the next Friday
- ``"PreviousFriday"``      (day scope) move back to the previous Friday

"Next" never lands on the current month/weekday, "Previous" does: asking for
the previous Friday on a Friday returns the same day.

Usage:
    from file_archiver.dates import DateTimeScope, resolve_operation

    op = resolve_operation("PreviousMonday", DateTimeScope.DAY, DayOfWeek.MONDAY, now)
    moved = apply_operation(now, DateTimeScope.DAY, op)
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum, IntEnum
from typing import Any, Callable, Dict, List, Optional, Pattern, Tuple, Union

from dateutil.relativedelta import relativedelta

from .errors import InvalidArgumentError, UnsupportedOperationError

MONTHS_IN_YEAR = 12
DAYS_IN_WEEK = 7


class DateTimeScope(str, Enum):
    """Component of a datetime a parameter applies to."""
    YEAR = "Year"
    MONTH = "Month"
    DAY = "Day"
    HOUR = "Hour"
    MINUTE = "Minute"
    SECOND = "Second"
    MILLISECOND = "Millisecond"


SCOPES_IN_ORDER: Tuple[DateTimeScope, ...] = tuple(DateTimeScope)


class DayOfWeek(IntEnum):
    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6


class Month(IntEnum):
    JANUARY = 1
    FEBRUARY = 2
    MARCH = 3
    APRIL = 4
    MAY = 5
    JUNE = 6
    JULY = 7
    AUGUST = 8
    SEPTEMBER = 9
    OCTOBER = 10
    NOVEMBER = 11
    DECEMBER = 12


class OperationKind(str, Enum):
    NONE = "none"
    SET_VALUE = "set_value"
    ADD = "add"


@dataclass(frozen=True)
class DateTimeOperation:
    """Result of resolving a parameter: nothing, set a value, or add a delta."""
    kind: OperationKind
    value: int = 0

    @classmethod
    def none(cls) -> DateTimeOperation:
        return cls(OperationKind.NONE)

    @classmethod
    def set_value(cls, value: int) -> DateTimeOperation:
        return cls(OperationKind.SET_VALUE, value)

    @classmethod
    def add(cls, delta: int) -> DateTimeOperation:
        return cls(OperationKind.ADD, delta)


_FIRST_VALUES: Dict[DateTimeScope, int] = {
    DateTimeScope.YEAR: datetime.min.year,
    DateTimeScope.MONTH: 1,
    DateTimeScope.DAY: 1,
    DateTimeScope.HOUR: 0,
    DateTimeScope.MINUTE: 0,
    DateTimeScope.SECOND: 0,
    DateTimeScope.MILLISECOND: 0,
}

# Day is missing on purpose: its last value depends on the reference month.
_LAST_VALUES: Dict[DateTimeScope, int] = {
    DateTimeScope.YEAR: datetime.max.year,
    DateTimeScope.MONTH: 12,
    DateTimeScope.HOUR: 23,
    DateTimeScope.MINUTE: 59,
    DateTimeScope.SECOND: 59,
    DateTimeScope.MILLISECOND: 999,
}

_RELATIVEDELTA_UNITS: Dict[DateTimeScope, str] = {
    DateTimeScope.YEAR: "years",
    DateTimeScope.MONTH: "months",
    DateTimeScope.DAY: "days",
    DateTimeScope.HOUR: "hours",
    DateTimeScope.MINUTE: "minutes",
    DateTimeScope.SECOND: "seconds",
}


# ============================================================================
# Calendar helpers
# ============================================================================


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def day_of_week(value: Union[date, datetime]) -> DayOfWeek:
    """Day of week of ``value`` with Sunday as 0."""
    return DayOfWeek((value.weekday() + 1) % DAYS_IN_WEEK)


def _month_of(value: Union[Month, int, date, datetime]) -> int:
    if isinstance(value, (date, datetime)):
        return value.month
    return int(value)


def _day_of_week_of(value: Union[DayOfWeek, int, date, datetime]) -> int:
    if isinstance(value, (date, datetime)):
        return int(day_of_week(value))
    return int(value)


def get_month_difference(destination: Union[Month, int], current: Union[Month, int, date, datetime]) -> int:
    return int(destination) - _month_of(current)


def get_next_month_difference(destination: Union[Month, int], current: Union[Month, int, date, datetime]) -> int:
    """Months to move forward to reach ``destination``; the current month counts as 12."""
    difference = get_month_difference(destination, current)
    if difference <= 0:
        difference += MONTHS_IN_YEAR
    return difference


def get_previous_month_difference(destination: Union[Month, int], current: Union[Month, int, date, datetime]) -> int:
    """Months to move back to reach ``destination``; the current month counts as 0."""
    difference = get_month_difference(destination, current)
    if difference > 0:
        difference -= MONTHS_IN_YEAR
    return difference


def get_day_of_week_difference(
    destination: Union[DayOfWeek, int],
    current: Union[DayOfWeek, int, date, datetime],
    first_day_of_week: Optional[Union[DayOfWeek, int]] = None,
) -> int:
    """
    Days between ``current`` and ``destination`` inside the same week.

    With ``first_day_of_week``, a current day numbered before it (Sunday is
    0) pushes the result one week forward.
    """
    current_day = _day_of_week_of(current)
    difference = int(destination) - current_day
    if first_day_of_week is not None and int(first_day_of_week) > current_day:
        difference += DAYS_IN_WEEK
    return difference


def get_next_day_of_week_difference(
    destination: Union[DayOfWeek, int],
    current: Union[DayOfWeek, int, date, datetime],
) -> int:
    """Days to move forward to reach ``destination``; today counts as 7."""
    difference = get_day_of_week_difference(destination, current)
    if difference <= 0:
        difference += DAYS_IN_WEEK
    return difference


def get_previous_day_of_week_difference(
    destination: Union[DayOfWeek, int],
    current: Union[DayOfWeek, int, date, datetime],
) -> int:
    """Days to move back to reach ``destination``; today counts as 0."""
    difference = get_day_of_week_difference(destination, current)
    if difference > 0:
        difference -= DAYS_IN_WEEK
    return difference


# ============================================================================
# Parameter grammar
# ============================================================================


class ParameterKind(str, Enum):
    SIGNED_INTEGER = "signed_integer"
    INTEGER = "integer"
    PREVIOUS = "previous"
    NEXT = "next"
    FIRST = "first"
    LAST = "last"
    NAMED_MONTH = "named_month"
    NEXT_OF_MONTH = "next_of_month"
    PREVIOUS_OF_MONTH = "previous_of_month"
    NAMED_WEEKDAY = "named_weekday"
    NEXT_OF_WEEKDAY = "next_of_weekday"
    PREVIOUS_OF_WEEKDAY = "previous_of_weekday"


@dataclass(frozen=True)
class ParsedParameter:
    kind: ParameterKind
    raw: str
    value: Optional[int] = None


_MONTH_NAMES = "|".join(m.name for m in Month)
_WEEKDAY_NAMES = "|".join(d.name for d in DayOfWeek)

# Order matters: it is the precedence of the grammar.
_GRAMMAR: List[Tuple[ParameterKind, Pattern[str]]] = [
    (ParameterKind.SIGNED_INTEGER, re.compile(r"[+-].*", re.DOTALL)),
    (ParameterKind.INTEGER, re.compile(r"\s*[+-]?\d+\s*")),
    (ParameterKind.PREVIOUS, re.compile(r"previous", re.IGNORECASE)),
    (ParameterKind.NEXT, re.compile(r"next", re.IGNORECASE)),
    (ParameterKind.FIRST, re.compile(r"first", re.IGNORECASE)),
    (ParameterKind.LAST, re.compile(r"last", re.IGNORECASE)),
    (ParameterKind.NAMED_MONTH, re.compile(rf"(?P<name>{_MONTH_NAMES})", re.IGNORECASE)),
    (ParameterKind.NEXT_OF_MONTH, re.compile(rf"next(?P<name>{_MONTH_NAMES})", re.IGNORECASE)),
    (ParameterKind.PREVIOUS_OF_MONTH, re.compile(rf"previous(?P<name>{_MONTH_NAMES})", re.IGNORECASE)),
    (ParameterKind.NAMED_WEEKDAY, re.compile(rf"(?P<name>{_WEEKDAY_NAMES})", re.IGNORECASE)),
    (ParameterKind.NEXT_OF_WEEKDAY, re.compile(rf"next(?P<name>{_WEEKDAY_NAMES})", re.IGNORECASE)),
    (ParameterKind.PREVIOUS_OF_WEEKDAY, re.compile(rf"previous(?P<name>{_WEEKDAY_NAMES})", re.IGNORECASE)),
]

_SIGNED_INTEGER = re.compile(r"[+-]\d+\s*")


def parse_parameter(parameter: Optional[str]) -> Optional[ParsedParameter]:
    """
    Classify a date parameter.

    Returns:
        None for an empty/blank parameter, else the parsed parameter

    Raises:
        InvalidArgumentError: A sign is not followed by an integer
        UnsupportedOperationError: The parameter is not part of the grammar
            (reported without a scope)
    """
    if parameter is None or not parameter.strip():
        return None

    for kind, pattern in _GRAMMAR:
        match = pattern.fullmatch(parameter)
        if not match:
            continue

        if kind is ParameterKind.SIGNED_INTEGER:
            if not _SIGNED_INTEGER.fullmatch(parameter):
                raise InvalidArgumentError(
                    f"The value following the sign must be an integer. {parameter} given."
                )
            return ParsedParameter(kind, parameter, int(parameter))

        if kind is ParameterKind.INTEGER:
            return ParsedParameter(kind, parameter, int(parameter))

        name = match.groupdict().get("name")
        if name is None:
            return ParsedParameter(kind, parameter)
        if kind in (ParameterKind.NAMED_MONTH, ParameterKind.NEXT_OF_MONTH, ParameterKind.PREVIOUS_OF_MONTH):
            return ParsedParameter(kind, parameter, int(Month[name.upper()]))
        return ParsedParameter(kind, parameter, int(DayOfWeek[name.upper()]))

    raise UnsupportedOperationError("parameter", parameter)


_Handler = Callable[[ParsedParameter, DateTimeScope, DayOfWeek, datetime], Optional[DateTimeOperation]]


def _last_value(scope: DateTimeScope, reference: datetime) -> int:
    if scope is DateTimeScope.DAY:
        return days_in_month(reference.year, reference.month)
    return _LAST_VALUES[scope]


def _month_only(handler: Callable[[ParsedParameter, datetime], DateTimeOperation]) -> _Handler:
    def wrapped(parsed, scope, first_day_of_week, reference):
        return handler(parsed, reference) if scope is DateTimeScope.MONTH else None
    return wrapped


def _day_only(handler: Callable[[ParsedParameter, DayOfWeek, datetime], DateTimeOperation]) -> _Handler:
    def wrapped(parsed, scope, first_day_of_week, reference):
        return handler(parsed, first_day_of_week, reference) if scope is DateTimeScope.DAY else None
    return wrapped


_HANDLERS: Dict[ParameterKind, _Handler] = {
    ParameterKind.SIGNED_INTEGER: lambda p, s, f, r: DateTimeOperation.add(p.value),
    ParameterKind.INTEGER: lambda p, s, f, r: DateTimeOperation.set_value(p.value),
    ParameterKind.PREVIOUS: lambda p, s, f, r: DateTimeOperation.add(-1),
    ParameterKind.NEXT: lambda p, s, f, r: DateTimeOperation.add(1),
    ParameterKind.FIRST: lambda p, s, f, r: DateTimeOperation.set_value(_FIRST_VALUES[s]),
    ParameterKind.LAST: lambda p, s, f, r: DateTimeOperation.set_value(_last_value(s, r)),
    ParameterKind.NAMED_MONTH: _month_only(
        lambda p, r: DateTimeOperation.set_value(p.value)
    ),
    ParameterKind.NEXT_OF_MONTH: _month_only(
        lambda p, r: DateTimeOperation.add(get_next_month_difference(p.value, r))
    ),
    ParameterKind.PREVIOUS_OF_MONTH: _month_only(
        lambda p, r: DateTimeOperation.add(get_previous_month_difference(p.value, r))
    ),
    ParameterKind.NAMED_WEEKDAY: _day_only(
        lambda p, f, r: DateTimeOperation.add(get_day_of_week_difference(p.value, r, f))
    ),
    ParameterKind.NEXT_OF_WEEKDAY: _day_only(
        lambda p, f, r: DateTimeOperation.add(get_next_day_of_week_difference(p.value, r))
    ),
    ParameterKind.PREVIOUS_OF_WEEKDAY: _day_only(
        lambda p, f, r: DateTimeOperation.add(get_previous_day_of_week_difference(p.value, r))
    ),
}


def resolve_operation(
    parameter: Optional[str],
    scope: DateTimeScope,
    first_day_of_week: DayOfWeek,
    reference: datetime,
) -> DateTimeOperation:
    """
    Resolve a symbolic parameter for one scope against a reference datetime.

    Raises:
        InvalidArgumentError: A sign is not followed by an integer
        UnsupportedOperationError: The parameter is unknown or not valid for
            ``scope`` (e.g. a month name for the day scope)
    """
    try:
        parsed = parse_parameter(parameter)
    except UnsupportedOperationError:
        raise UnsupportedOperationError(scope, parameter or "") from None

    if parsed is None:
        return DateTimeOperation.none()

    operation = _HANDLERS[parsed.kind](parsed, scope, DayOfWeek(first_day_of_week), reference)
    if operation is None:
        raise UnsupportedOperationError(scope, parsed.raw)
    return operation


# ============================================================================
# Applying operations
# ============================================================================


def add_units(value: datetime, scope: DateTimeScope, amount: int) -> datetime:
    """Calendar-aware addition; month/year overflow clamps to the month end."""
    if amount == 0:
        return value
    if scope is DateTimeScope.MILLISECOND:
        return value + relativedelta(microseconds=amount * 1000)
    return value + relativedelta(**{_RELATIVEDELTA_UNITS[scope]: amount})


def set_component(value: datetime, scope: DateTimeScope, component: int) -> datetime:
    replacements: Dict[str, Any]
    if scope is DateTimeScope.MILLISECOND:
        replacements = {"microsecond": component * 1000 + value.microsecond % 1000}
    else:
        replacements = {scope.value.lower(): component}
    try:
        return value.replace(**replacements)
    except ValueError as exc:
        raise InvalidArgumentError(f"Cannot set {scope.value} to {component}: {exc}") from exc


def apply_operation(value: datetime, scope: DateTimeScope, operation: DateTimeOperation) -> datetime:
    if operation.kind is OperationKind.SET_VALUE:
        return set_component(value, scope, operation.value)
    if operation.kind is OperationKind.ADD:
        return add_units(value, scope, operation.value)
    return value


def update_component(
    value: datetime,
    scope: DateTimeScope,
    parameter: Optional[str],
    first_day_of_week: DayOfWeek = DayOfWeek.SUNDAY,
) -> datetime:
    """Resolve ``parameter`` for ``scope`` against ``value`` and apply it."""
    operation = resolve_operation(parameter, scope, first_day_of_week, value)
    return apply_operation(value, scope, operation)


def calculate_datetime(value: datetime, parameters: Any) -> datetime:
    """
    Apply a full set of date parameters, from year down to millisecond.

    ``parameters`` is anything exposing ``year`` .. ``millisecond`` and
    ``first_day_of_week`` attributes (see ``DateTimeParameters``). Each scope
    is resolved against the value produced by the previous one.
    """
    first_day_of_week = DayOfWeek(getattr(parameters, "first_day_of_week", DayOfWeek.SUNDAY))
    for scope in SCOPES_IN_ORDER:
        parameter = getattr(parameters, scope.value.lower(), None)
        value = update_component(value, scope, parameter, first_day_of_week)
    return value
