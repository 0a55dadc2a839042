"""Date parsing utilities."""

from datetime import date, timedelta
from typing import Optional
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


def parse_date(date_str: str) -> date:
    """Parse a date string into a date object.

    Accepts "today", "yesterday", "tomorrow" and anything dateutil can read
    ("2024-01-15", "15/01/2024", "January 15, 2024"). Day-first is assumed for
    ambiguous numeric dates, which is how trip sheets are written.

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
        # ISO dates are unambiguous; only apply day-first to other layouts
        dayfirst = not (len(date_str) >= 5 and date_str[4] == "-")
        return date_parser.parse(date_str, dayfirst=dayfirst).date()
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def previous_month_range(today: Optional[date] = None) -> tuple[date, date]:
    """First and last day of the calendar month before ``today``.

    Both boundaries are inclusive.
    """
    today = today or date.today()
    start_date = (today - relativedelta(months=1)).replace(day=1)
    end_date = today.replace(day=1) - timedelta(days=1)
    return (start_date, end_date)
