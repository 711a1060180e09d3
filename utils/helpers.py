"""
Utility functions for Lynck Space calendar backend.
"""
import logging
from datetime import date, datetime, timedelta, timezone as dt_timezone
from typing import Optional, Tuple

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

logger = logging.getLogger(__name__)

ALL_DAY_START_TIME = 'T00:00:00'
ALL_DAY_END_TIME = 'T23:59:59'


def add_months(d: datetime, months: int) -> datetime:
    """Return the first day of the month `months` after `d`, same time of day."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    return d.replace(year=year, month=month, day=1)


def month_window(now: datetime, months_ahead: int = 3) -> Tuple[datetime, datetime]:
    """
    Compute the reconciliation window for a sync run.

    The window starts at the first instant of the current month (UTC) and
    ends at the first instant of the month following the month
    `months_ahead` months later, so the last day of that month is covered.

    Args:
        now: Reference instant
        months_ahead: How many months past the current one to include

    Returns:
        Tuple of (time_min, time_max), both timezone-aware UTC
    """
    if timezone.is_naive(now):
        now = timezone.make_aware(now, dt_timezone.utc)
    now = now.astimezone(dt_timezone.utc)
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    end = add_months(start, months_ahead + 1)
    return start, end


def to_rfc3339(value: datetime) -> str:
    """Format an aware datetime the way the Google API expects (UTC, 'Z' suffix)."""
    if timezone.is_naive(value):
        value = timezone.make_aware(value, dt_timezone.utc)
    return value.astimezone(dt_timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


def parse_datetime_value(value) -> Optional[datetime]:
    """
    Parse an ISO-8601 string (or pass through a datetime).

    Naive values are interpreted as UTC. Returns None for empty or
    unparseable input.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = parse_datetime(str(value))
        except ValueError:
            parsed = None
        if parsed is None:
            logger.debug(f"Unparseable datetime value: {value!r}")
            return None
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, dt_timezone.utc)
    return parsed


def normalize_remote_times(remote_event: dict) -> Optional[Tuple[str, str]]:
    """
    Extract start/end strings from a Google event resource.

    Timed events keep their `dateTime`. All-day events only carry `date`:
    the start becomes midnight of `start.date` and the end becomes
    23:59:59 of `end.date`. A missing end falls back to the start.

    Returns:
        (start, end) ISO strings, or None when the event has no start at all
    """
    start = remote_event.get('start') or {}
    end = remote_event.get('end') or {}

    if start.get('dateTime'):
        start_value = start['dateTime']
    elif start.get('date'):
        start_value = f"{start['date']}{ALL_DAY_START_TIME}"
    else:
        return None

    if end.get('dateTime'):
        end_value = end['dateTime']
    elif end.get('date'):
        end_value = f"{end['date']}{ALL_DAY_END_TIME}"
    else:
        end_value = start_value

    return start_value, end_value


def next_day(d: date) -> date:
    """Exclusive end date of a one-day all-day event."""
    return d + timedelta(days=1)


def coerce_date(value) -> Optional[date]:
    """Accept a date, a datetime or an ISO string and return a date."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_date(str(value))
