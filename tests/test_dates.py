from __future__ import annotations

from datetime import datetime
from types import SimpleNamespace

import pytest

from file_archiver.config import DateTimeParameters
from file_archiver.dates import (
    DateTimeOperation,
    DateTimeScope,
    DayOfWeek,
    Month,
    OperationKind,
    ParameterKind,
    add_units,
    calculate_datetime,
    day_of_week,
    get_day_of_week_difference,
    get_month_difference,
    get_next_day_of_week_difference,
    get_next_month_difference,
    get_previous_day_of_week_difference,
    get_previous_month_difference,
    parse_parameter,
    resolve_operation,
    set_component,
    update_component,
)
from file_archiver.errors import InvalidArgumentError, UnsupportedOperationError

# Friday 2019-03-15
REFERENCE = datetime(2019, 3, 15, 10, 20, 30, 123456)


class TestCalendarHelpers:
    def test_day_of_week_counts_from_sunday(self):
        assert day_of_week(datetime(2019, 1, 6)) is DayOfWeek.SUNDAY
        assert day_of_week(datetime(2019, 1, 9)) is DayOfWeek.WEDNESDAY
        assert day_of_week(REFERENCE) is DayOfWeek.FRIDAY

    @pytest.mark.parametrize("month", list(Month))
    def test_same_month_next_is_a_full_year_previous_is_zero(self, month):
        assert get_next_month_difference(month, month) == 12
        assert get_previous_month_difference(month, month) == 0

    @pytest.mark.parametrize("day", list(DayOfWeek))
    def test_same_weekday_next_is_a_full_week_previous_is_zero(self, day):
        assert get_next_day_of_week_difference(day, day) == 7
        assert get_previous_day_of_week_difference(day, day) == 0

    def test_month_differences(self):
        assert get_month_difference(Month.JANUARY, Month.MARCH) == -2
        assert get_next_month_difference(Month.JANUARY, Month.MARCH) == 10
        assert get_previous_month_difference(Month.JANUARY, Month.MARCH) == -2
        assert get_next_month_difference(Month.MAY, REFERENCE) == 2
        assert get_previous_month_difference(Month.MAY, REFERENCE) == -10

    def test_weekday_differences(self):
        assert get_next_day_of_week_difference(DayOfWeek.MONDAY, DayOfWeek.FRIDAY) == 3
        assert get_previous_day_of_week_difference(DayOfWeek.MONDAY, DayOfWeek.FRIDAY) == -4
        assert get_previous_day_of_week_difference(DayOfWeek.SATURDAY, DayOfWeek.FRIDAY) == -6
        assert get_next_day_of_week_difference(DayOfWeek.SATURDAY, REFERENCE) == 1

    def test_weekday_difference_with_first_day_of_week(self):
        assert get_day_of_week_difference(DayOfWeek.MONDAY, DayOfWeek.FRIDAY, DayOfWeek.MONDAY) == -4
        # Sunday is numbered before Monday: the result moves one week forward.
        assert get_day_of_week_difference(DayOfWeek.FRIDAY, DayOfWeek.SUNDAY, DayOfWeek.MONDAY) == 12
        assert get_day_of_week_difference(DayOfWeek.FRIDAY, DayOfWeek.SUNDAY) == 5


class TestParseParameter:
    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank_is_none(self, value):
        assert parse_parameter(value) is None

    @pytest.mark.parametrize(
        "value,kind,number",
        [
            ("+2", ParameterKind.SIGNED_INTEGER, 2),
            ("-1", ParameterKind.SIGNED_INTEGER, -1),
            ("3", ParameterKind.INTEGER, 3),
            (" 12 ", ParameterKind.INTEGER, 12),
            ("Previous", ParameterKind.PREVIOUS, None),
            ("NEXT", ParameterKind.NEXT, None),
            ("first", ParameterKind.FIRST, None),
            ("Last", ParameterKind.LAST, None),
            ("March", ParameterKind.NAMED_MONTH, 3),
            ("NextDecember", ParameterKind.NEXT_OF_MONTH, 12),
            ("previousjanuary", ParameterKind.PREVIOUS_OF_MONTH, 1),
            ("Friday", ParameterKind.NAMED_WEEKDAY, 5),
            ("NextSunday", ParameterKind.NEXT_OF_WEEKDAY, 0),
            ("PreviousMonday", ParameterKind.PREVIOUS_OF_WEEKDAY, 1),
        ],
    )
    def test_grammar(self, value, kind, number):
        parsed = parse_parameter(value)
        assert parsed.kind is kind
        assert parsed.value == number

    @pytest.mark.parametrize("value", ["+", "+x", "-1.5", "+ 2", "-Monday"])
    def test_sign_must_be_followed_by_an_integer(self, value):
        with pytest.raises(InvalidArgumentError, match="The value following the sign must be an integer"):
            parse_parameter(value)

    @pytest.mark.parametrize("value", ["bogus", "Next Monday", "Mar", "1st"])
    def test_unknown_parameter(self, value):
        with pytest.raises(UnsupportedOperationError):
            parse_parameter(value)


class TestResolveOperation:
    def test_empty_is_no_operation(self):
        assert resolve_operation("", DateTimeScope.DAY, DayOfWeek.SUNDAY, REFERENCE) == DateTimeOperation.none()
        assert resolve_operation(None, DateTimeScope.YEAR, DayOfWeek.SUNDAY, REFERENCE).kind is OperationKind.NONE

    def test_integers(self):
        assert resolve_operation("2018", DateTimeScope.YEAR, DayOfWeek.SUNDAY, REFERENCE) == DateTimeOperation.set_value(2018)
        assert resolve_operation("-3", DateTimeScope.HOUR, DayOfWeek.SUNDAY, REFERENCE) == DateTimeOperation.add(-3)

    def test_next_previous(self):
        assert resolve_operation("Next", DateTimeScope.MINUTE, DayOfWeek.SUNDAY, REFERENCE) == DateTimeOperation.add(1)
        assert resolve_operation("Previous", DateTimeScope.MONTH, DayOfWeek.SUNDAY, REFERENCE) == DateTimeOperation.add(-1)

    def test_first_then_last_month(self):
        assert resolve_operation("First", DateTimeScope.MONTH, DayOfWeek.SUNDAY, REFERENCE).value == 1
        assert resolve_operation("Last", DateTimeScope.MONTH, DayOfWeek.SUNDAY, REFERENCE).value == 12

    def test_first_and_last_bounds(self):
        assert resolve_operation("First", DateTimeScope.YEAR, DayOfWeek.SUNDAY, REFERENCE).value == 1
        assert resolve_operation("Last", DateTimeScope.YEAR, DayOfWeek.SUNDAY, REFERENCE).value == 9999
        assert resolve_operation("Last", DateTimeScope.HOUR, DayOfWeek.SUNDAY, REFERENCE).value == 23
        assert resolve_operation("Last", DateTimeScope.MILLISECOND, DayOfWeek.SUNDAY, REFERENCE).value == 999

    def test_last_day_depends_on_reference_month(self):
        assert resolve_operation("Last", DateTimeScope.DAY, DayOfWeek.SUNDAY, datetime(2019, 2, 10)).value == 28
        assert resolve_operation("Last", DateTimeScope.DAY, DayOfWeek.SUNDAY, datetime(2020, 2, 10)).value == 29
        assert resolve_operation("Last", DateTimeScope.DAY, DayOfWeek.SUNDAY, datetime(2019, 4, 1)).value == 30

    def test_next_and_previous_month_name(self):
        assert resolve_operation("NextMarch", DateTimeScope.MONTH, DayOfWeek.SUNDAY, REFERENCE) == DateTimeOperation.add(12)
        assert resolve_operation("PreviousMarch", DateTimeScope.MONTH, DayOfWeek.SUNDAY, REFERENCE) == DateTimeOperation.add(0)
        assert resolve_operation("March", DateTimeScope.MONTH, DayOfWeek.SUNDAY, REFERENCE) == DateTimeOperation.set_value(3)

    def test_next_and_previous_weekday_name(self):
        assert resolve_operation("NextFriday", DateTimeScope.DAY, DayOfWeek.SUNDAY, REFERENCE) == DateTimeOperation.add(7)
        assert resolve_operation("PreviousFriday", DateTimeScope.DAY, DayOfWeek.SUNDAY, REFERENCE) == DateTimeOperation.add(0)
        assert resolve_operation("Monday", DateTimeScope.DAY, DayOfWeek.MONDAY, REFERENCE) == DateTimeOperation.add(-4)

    def test_month_name_is_rejected_outside_month_scope(self):
        with pytest.raises(UnsupportedOperationError, match="Date time Day operation 'March' is not supported."):
            resolve_operation("March", DateTimeScope.DAY, DayOfWeek.SUNDAY, REFERENCE)

    def test_weekday_name_is_rejected_outside_day_scope(self):
        with pytest.raises(UnsupportedOperationError, match="Date time Month operation 'NextFriday'"):
            resolve_operation("NextFriday", DateTimeScope.MONTH, DayOfWeek.SUNDAY, REFERENCE)

    def test_unknown_parameter_reports_scope(self):
        with pytest.raises(UnsupportedOperationError) as exc_info:
            resolve_operation("bogus", DateTimeScope.YEAR, DayOfWeek.SUNDAY, REFERENCE)
        assert exc_info.value.scope is DateTimeScope.YEAR
        assert str(exc_info.value) == "Date time Year operation 'bogus' is not supported."

    def test_unsupported_is_a_value_error(self):
        with pytest.raises(ValueError):
            resolve_operation("bogus", DateTimeScope.YEAR, DayOfWeek.SUNDAY, REFERENCE)


class TestApplying:
    def test_add_months_clamps_to_month_end(self):
        assert add_units(datetime(2019, 1, 31), DateTimeScope.MONTH, 1) == datetime(2019, 2, 28)
        assert add_units(datetime(2020, 2, 29), DateTimeScope.YEAR, -1) == datetime(2019, 2, 28)

    def test_add_milliseconds(self):
        assert add_units(datetime(2019, 1, 1), DateTimeScope.MILLISECOND, -1) == datetime(2018, 12, 31, 23, 59, 59, 999000)

    def test_set_millisecond_keeps_sub_millisecond_part(self):
        assert set_component(REFERENCE, DateTimeScope.MILLISECOND, 5).microsecond == 5456

    def test_set_invalid_component(self):
        with pytest.raises(InvalidArgumentError):
            set_component(datetime(2019, 2, 10), DateTimeScope.DAY, 31)

    def test_update_component(self):
        assert update_component(REFERENCE, DateTimeScope.HOUR, "+2") == REFERENCE.replace(hour=12)
        assert update_component(REFERENCE, DateTimeScope.DAY, "PreviousMonday") == datetime(2019, 3, 11, 10, 20, 30, 123456)
        assert update_component(REFERENCE, DateTimeScope.DAY, "") == REFERENCE


class TestCalculateDatetime:
    def test_scopes_apply_in_order(self):
        # Day "Last" is resolved against the already moved month.
        params = DateTimeParameters(month="Previous", day="Last")
        assert calculate_datetime(REFERENCE, params) == datetime(2019, 2, 28, 10, 20, 30, 123456)

    def test_start_of_year(self):
        params = DateTimeParameters(month="First", day="First", hour="0", minute="0", second="0", millisecond="0")
        assert calculate_datetime(REFERENCE, params) == datetime(2019, 1, 1, 0, 0, 0, 456)

    def test_weekday_uses_first_day_of_week(self):
        params = DateTimeParameters(day="Monday", first_day_of_week=DayOfWeek.MONDAY)
        assert calculate_datetime(REFERENCE, params).date() == datetime(2019, 3, 11).date()

    def test_accepts_any_object_with_attributes(self):
        params = SimpleNamespace(year="-1", month=None, day=None, hour=None, minute=None, second=None, millisecond=None)
        assert calculate_datetime(REFERENCE, params) == REFERENCE.replace(year=2018)

    def test_empty_parameters_leave_value_untouched(self):
        assert calculate_datetime(REFERENCE, DateTimeParameters()) == REFERENCE
