"""Tests for date parser with relative dates."""

import pytest
from datetime import date, timedelta
from dateutil.relativedelta import relativedelta
from pocketbook.utils.date_parser import parse_date, get_date_range


def test_parse_record_date_is_day_first():
    """Record dates are written dd/mm/yyyy."""
    assert parse_date("01/06/2024") == date(2024, 6, 1)
    assert parse_date("1-6-2024") == date(2024, 6, 1)


def test_parse_iso_date():
    assert parse_date("2024-06-01") == date(2024, 6, 1)


def test_parse_relative_dates():
    today = date.today()
    assert parse_date("today") == today
    assert parse_date("HOY") == today
    assert parse_date("yesterday") == today - timedelta(days=1)
    assert parse_date("ayer") == today - timedelta(days=1)
    assert parse_date("tomorrow") == today + timedelta(days=1)


@pytest.mark.parametrize("value", ["", "   ", "31/02/2024", "not a date"])
def test_parse_invalid_dates(value):
    with pytest.raises(ValueError):
        parse_date(value)


def test_get_date_range_this_month():
    """Test get_date_range for this-month."""
    today = date.today()
    start, end = get_date_range("this-month")
    assert start == date(today.year, today.month, 1)
    assert end == today


def test_get_date_range_this_year():
    today = date.today()
    assert get_date_range("this-year") == (date(today.year, 1, 1), today)


def test_get_date_range_this_week():
    today = date.today()
    start, end = get_date_range("this-week")
    assert start.weekday() == 0  # Monday
    assert start == today - timedelta(days=today.weekday())
    assert end == today


def test_get_date_range_last_month():
    """Test get_date_range for last-month."""
    today = date.today()
    start, end = get_date_range("last-month")
    expected_start = (today - relativedelta(months=1)).replace(day=1)
    assert start == expected_start
    assert end == today.replace(day=1) - timedelta(days=1)
    assert end.month == expected_start.month


def test_get_date_range_last_year():
    today = date.today()
    start, end = get_date_range("last-year")
    assert start == date(today.year - 1, 1, 1)
    assert end == date(today.year - 1, 12, 31)


def test_get_date_range_last_week():
    start, end = get_date_range("last-week")
    assert start.weekday() == 0
    assert end.weekday() == 6
    assert (end - start).days == 6
    this_monday = date.today() - timedelta(days=date.today().weekday())
    assert end == this_monday - timedelta(days=1)


def test_get_date_range_invalid_period():
    with pytest.raises(ValueError, match="Unknown period"):
        get_date_range("invalid-period")


@pytest.mark.parametrize(
    "period,expected",
    [
        ("this-week", (date(2024, 3, 11), date(2024, 3, 13))),
        ("this-month", (date(2024, 3, 1), date(2024, 3, 13))),
        ("this-year", (date(2024, 1, 1), date(2024, 3, 13))),
        ("last-week", (date(2024, 3, 4), date(2024, 3, 10))),
        ("last-month", (date(2024, 2, 1), date(2024, 2, 29))),
        ("last-year", (date(2023, 1, 1), date(2023, 12, 31))),
    ],
)
def test_get_date_range_for_fixed_day(period, expected):
    # 13 March 2024 is a Wednesday in a leap year
    assert get_date_range(period, today=date(2024, 3, 13)) == expected
