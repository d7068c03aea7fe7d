"""
Retention windows.

Files are archived one calendar window at a time, walking backwards from a
cursor. Each call to ``next_window`` returns the window immediately older
than the cursor; feeding a window's ``start`` back in as the next cursor
yields contiguous, non-overlapping windows.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Iterator, Optional

from dateutil.relativedelta import relativedelta

from .dates import (
    SCOPES_IN_ORDER,
    DateTimeScope,
    DayOfWeek,
    add_units,
    days_in_month,
    get_previous_day_of_week_difference,
)
from .errors import InvalidArgumentError, UnsupportedOperationError
from .logger import get_logger

if TYPE_CHECKING:
    from .config import DateTimeParameters

log = get_logger(__name__)

END_OF_DAY = time(23, 59, 59, 999000)
ONE_MILLISECOND = timedelta(milliseconds=1)

_INTEGER = re.compile(r"\s*[+-]?\d+\s*")


class ArchiveStrategy(str, Enum):
    """Calendar granularity of the archive windows."""
    UNKNOWN = "Unknown"
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    YEARLY = "Yearly"


@dataclass(frozen=True)
class DateWindow:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise InvalidArgumentError(f"Window start {self.start} is after its end {self.end}.")

    def __contains__(self, value: datetime) -> bool:
        return self.start <= value <= self.end

    def __str__(self) -> str:
        return f"{self.start:%Y-%m-%d} - {self.end:%Y-%m-%d}"


def start_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min)


def end_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), END_OF_DAY)


def next_window(
    cursor: datetime,
    strategy: ArchiveStrategy,
    first_day_of_week: DayOfWeek = DayOfWeek.SUNDAY,
) -> DateWindow:
    """
    Compute the window immediately older than ``cursor``.

    - Daily: the day before the cursor
    - Weekly: the last full week (starting on ``first_day_of_week``) that
      ended before the cursor's week
    - Monthly: the calendar month before the cursor's month
    - Yearly: the calendar year before the cursor's year

    Raises:
        InvalidArgumentError: If the strategy is Unknown
    """
    log.debug("Calculating date using %s strategy...", strategy.value)

    if strategy is ArchiveStrategy.DAILY:
        end = cursor - timedelta(days=1)
        start = end

    elif strategy is ArchiveStrategy.WEEKLY:
        offset = get_previous_day_of_week_difference(first_day_of_week, cursor)
        end = cursor + timedelta(days=offset - 1)
        start = end - timedelta(days=6)

    elif strategy is ArchiveStrategy.MONTHLY:
        previous = cursor + relativedelta(months=-1)
        end = datetime(previous.year, previous.month, days_in_month(previous.year, previous.month))
        start = datetime(previous.year, previous.month, 1)

    elif strategy is ArchiveStrategy.YEARLY:
        end = datetime(cursor.year - 1, 12, 31)
        start = datetime(end.year, 1, 1)

    else:
        raise InvalidArgumentError(f"Archive strategy '{strategy.value}' is not a valid value.")

    window = DateWindow(start_of_day(start), end_of_day(end))
    log.debug("Date calculated: %s - %s.", window.start.isoformat(), window.end.isoformat())
    return window


def iter_windows(
    cursor: datetime,
    strategy: ArchiveStrategy,
    first_day_of_week: DayOfWeek = DayOfWeek.SUNDAY,
) -> Iterator[DateWindow]:
    """Yield successive, ever older windows starting from ``cursor``."""
    while True:
        window = next_window(cursor, strategy, first_day_of_week)
        yield window
        cursor = window.start


def retention_offset(parameter: Optional[str], scope: DateTimeScope = DateTimeScope.DAY) -> int:
    """
    Convert a retention parameter to the (non-positive) amount to add.

    ``"3"`` means three units back, ``"Last"``/``"Previous"`` one unit back,
    an empty value means no offset.

    Raises:
        InvalidArgumentError: If an integer value is negative
        UnsupportedOperationError: For any other value
    """
    if not parameter:
        return 0

    if _INTEGER.fullmatch(parameter):
        value = int(parameter)
        if value < 0:
            raise InvalidArgumentError("Retention date time parameter value cannot be negative.")
        return -value

    if parameter.lower() in ("last", "previous"):
        return -1

    raise UnsupportedOperationError(scope, parameter)


def initial_cursor(
    parameters: Optional[DateTimeParameters],
    today: Optional[date] = None,
) -> datetime:
    """Starting cursor: today at midnight moved back by the retention parameters."""
    cursor = datetime.combine(today or date.today(), time.min)
    if parameters is not None:
        for scope in SCOPES_IN_ORDER:
            offset = retention_offset(getattr(parameters, scope.value.lower()), scope)
            cursor = add_units(cursor, scope, offset)

    log.debug("Initial date calculated: %s.", cursor.isoformat())
    return cursor
