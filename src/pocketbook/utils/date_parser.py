"""Parsing of record dates and named reporting periods."""

from datetime import date, timedelta
from typing import Callable, Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

# Offsets in days from today, keyed by the words users type at the prompt
_RELATIVE_DAYS = {
    "today": 0,
    "hoy": 0,
    "yesterday": -1,
    "ayer": -1,
    "tomorrow": 1,
}


def _is_iso(text: str) -> bool:
    return len(text) >= 4 and text[:4].isdigit()


def parse_date(date_str: str) -> date:
    """Turn user or CSV input into a calendar date.

    Record dates are written dd/mm/yyyy, so "01/06/2024" is the first of
    June. ISO strings ("2024-06-01") are recognised by their leading year
    and read year-first. The words today/hoy, yesterday/ayer and tomorrow
    resolve against the local clock.

    Raises:
        ValueError: If the text is empty or not a valid date
    """
    text = date_str.strip().lower()
    if not text:
        raise ValueError("Empty date string")

    offset = _RELATIVE_DAYS.get(text)
    if offset is not None:
        return date.today() + timedelta(days=offset)

    try:
        return date_parser.parse(text, dayfirst=not _is_iso(text)).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{text}': {e}") from e


def _this_week(today: date) -> tuple[date, date]:
    return today - timedelta(days=today.weekday()), today


def _this_month(today: date) -> tuple[date, date]:
    return today.replace(day=1), today


def _this_year(today: date) -> tuple[date, date]:
    return today.replace(month=1, day=1), today


def _last_week(today: date) -> tuple[date, date]:
    monday = today - timedelta(days=today.weekday() + 7)
    return monday, monday + timedelta(days=6)


def _last_month(today: date) -> tuple[date, date]:
    first_of_month = today.replace(day=1)
    return first_of_month - relativedelta(months=1), first_of_month - timedelta(days=1)


def _last_year(today: date) -> tuple[date, date]:
    first_of_year = today.replace(month=1, day=1)
    return first_of_year - relativedelta(years=1), first_of_year - timedelta(days=1)


PERIOD_RANGES: dict[str, Callable[[date], tuple[date, date]]] = {
    "this-month": _this_month,
    "this-year": _this_year,
    "this-week": _this_week,
    "last-month": _last_month,
    "last-year": _last_year,
    "last-week": _last_week,
}


def get_date_range(period: str, today: Optional[date] = None) -> tuple[date, date]:
    """Resolve a named period to an inclusive (start, end) pair.

    "this-*" periods end today; "last-*" periods cover the whole previous
    week (Monday to Sunday), month or year.

    Args:
        period: One of the keys of PERIOD_RANGES
        today: Reference day, defaults to the local date

    Raises:
        ValueError: If the period name is not recognised
    """
    key = period.strip().lower()
    resolver = PERIOD_RANGES.get(key)
    if resolver is None:
        raise ValueError(
            f"Unknown period: '{key}'. Supported periods: {', '.join(PERIOD_RANGES)}"
        )
    return resolver(today or date.today())
