"""Date parsing utilities."""

from datetime import date, datetime, timedelta
from dateutil import parser as date_parser


def parse_date(date_str: str) -> date:
    """Parse a date string into a date object.

    Supports absolute dates ("2024-01-15", "January 15, 2024", ...) and the
    relative words "today", "yesterday" and "tomorrow".

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
        return date_parser.parse(date_str).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}") from e


def parse_timestamp(value: str) -> datetime:
    """Parse a bill timestamp such as "2024-01-15 12:30:05".

    Timestamps are kept naive: provider exports carry local wall-clock time,
    and rule time ranges are evaluated against that wall-clock time.

    Raises:
        ValueError: If the timestamp cannot be parsed
    """
    if value is None or not str(value).strip():
        raise ValueError("Empty timestamp")
    try:
        parsed = date_parser.parse(str(value).strip())
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse timestamp '{value}': {e}") from e
    return parsed.replace(tzinfo=None)


def minutes_of_day(moment: datetime) -> int:
    """Return the minute of the day (0-1439) of a timestamp, ignoring the date."""
    return moment.hour * 60 + moment.minute
