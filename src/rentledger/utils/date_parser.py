"""Date parsing and billing period utilities."""

from datetime import date, datetime, timedelta, UTC
from typing import Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


def utcnow() -> datetime:
    """Return the current time as a naive UTC datetime (the storage convention)."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def parse_date(date_str: str) -> date:
    """Parse a date string into a date object.

    Supports absolute dates ("2024-01-15", "January 15, 2024", ...) and the
    relative forms "today", "yesterday", "tomorrow", "last month",
    "this month", "last year" and "this year".

    Args:
        date_str: Date string in various formats

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
        "this month": today.replace(day=1),
        "last month": (today - relativedelta(months=1)).replace(day=1),
        "this year": today.replace(month=1, day=1),
        "last year": today.replace(month=1, day=1) - relativedelta(years=1),
    }
    if date_str in relative_dates:
        return relative_dates[date_str]

    try:
        return date_parser.parse(date_str).date()
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def parse_datetime(value: str) -> datetime:
    """Parse a timestamp string into a naive UTC datetime.

    Raises:
        ValueError: If the string cannot be parsed
    """
    try:
        return to_naive_utc(date_parser.parse(value))
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse timestamp '{value}': {e}")


def get_date_range(period: str) -> tuple[date, date]:
    """Get start and end dates for a named period.

    Args:
        period: One of this-month, last-month, this-year, last-year

    Returns:
        Tuple of (start_date, end_date)

    Raises:
        ValueError: If period string is not recognized
    """
    period = period.strip().lower()
    today = date.today()

    if period == "this-month":
        return today.replace(day=1), today
    if period == "last-month":
        start_date = (today - relativedelta(months=1)).replace(day=1)
        return start_date, today.replace(day=1) - timedelta(days=1)
    if period == "this-year":
        return today.replace(month=1, day=1), today
    if period == "last-year":
        start_date = today.replace(month=1, day=1) - relativedelta(years=1)
        return start_date, today.replace(month=1, day=1) - timedelta(days=1)

    raise ValueError(
        f"Unknown period: '{period}'. Supported periods: this-month, last-month, this-year, last-year"
    )


def previous_billing_period(today: Optional[date] = None) -> tuple[int, int]:
    """Return (month, year) of the month before ``today``."""
    target = (today or date.today()) - relativedelta(months=1)
    return target.month, target.year


def month_bounds(month: int, year: int) -> tuple[date, date]:
    """Return the first and last day of a month."""
    start = date(year, month, 1)
    return start, start + relativedelta(months=1) - timedelta(days=1)
