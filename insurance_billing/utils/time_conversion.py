"""
Date utilities for billing periods.
"""

import calendar
from datetime import date, datetime, timedelta

from dateutil.relativedelta import relativedelta


def add_months(d: date, months: int) -> date:
    """
    Add months to a date.

    Handles end-of-month edge cases (e.g., Jan 31 + 1 month = Feb 28).

    Args:
        d: Base date
        months: Number of months to add (can be negative)

    Returns:
        New date
    """
    return d + relativedelta(months=months)


def first_of_month(d: date) -> date:
    """Get the first day of the month containing d."""
    return date(d.year, d.month, 1)


def last_of_month(d: date) -> date:
    """Get the last day of the month containing d."""
    return date(d.year, d.month, days_in_month(d))


def first_of_next_month(d: date) -> date:
    """Get the first day of the month after the one containing d."""
    return add_months(first_of_month(d), 1)


def days_in_month(d: date) -> int:
    """Number of days in the calendar month containing d."""
    return calendar.monthrange(d.year, d.month)[1]


def inclusive_days(start: date, end: date) -> int:
    """
    Count days from start to end, both endpoints included.

    Args:
        start: First day
        end: Last day

    Returns:
        Number of days (0 or negative when end precedes start)
    """
    return (end - start).days + 1


def next_month_window(today: date) -> tuple[date, date]:
    """
    Billing window for the calendar month after today.

    Args:
        today: Reference date

    Returns:
        (first day, last day) of next month
    """
    start = first_of_next_month(today)
    return start, last_of_month(start)


def overlap(
    start: date,
    end: date,
    window_start: date,
    window_end: date,
) -> tuple[date, date] | None:
    """
    Intersect a date range with a window.

    Args:
        start: Range start
        end: Range end
        window_start: Window start
        window_end: Window end

    Returns:
        (effective_start, effective_end), or None when the ranges do not meet
    """
    effective_start = max(start, window_start)
    effective_end = min(end, window_end)
    if effective_start > effective_end:
        return None
    return effective_start, effective_end


def as_date(value: date | datetime) -> date:
    """Truncate a datetime to its date; dates pass through."""
    if isinstance(value, datetime):
        return value.date()
    return value


def add_days(d: datetime, days: int) -> datetime:
    """Add days to a datetime."""
    return d + timedelta(days=days)
