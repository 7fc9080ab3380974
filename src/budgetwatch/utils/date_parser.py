"""Date parsing utilities for CLI input."""

from datetime import date, datetime, time, timedelta
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from budgetwatch.domain.dedupe import month_key


def parse_date(date_str: str) -> date:
    """Parse a date string into a date object.

    Supports:
    - Absolute dates: "2024-01-15", "January 15, 2024", etc.
    - Relative dates: "today", "yesterday", "tomorrow"

    Args:
        date_str: Date string

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
    }
    if date_str in relative_dates:
        return relative_dates[date_str]

    try:
        dt = date_parser.parse(date_str)
        return dt.date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def parse_month(month_str: str) -> str:
    """Parse a month into its ``YYYY-MM`` key.

    Accepts "2025-01", "Jan 2025", "this month", "last month", "next month"
    or any full date inside the month.

    Raises:
        ValueError: If the month cannot be parsed
    """
    month_str = month_str.strip().lower()
    first_of_month = date.today().replace(day=1)

    relative_months = {
        "this month": first_of_month,
        "last month": first_of_month - relativedelta(months=1),
        "next month": first_of_month + relativedelta(months=1),
    }
    if month_str in relative_months:
        return month_key(relative_months[month_str])

    try:
        # default pins missing day to the 1st, so "2025-02" never lands on Feb 30
        dt = date_parser.parse(month_str, default=datetime.combine(first_of_month, time()))
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse month '{month_str}': {e}")
    return month_key(dt.date())
