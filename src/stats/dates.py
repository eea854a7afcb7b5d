"""
Calendar Arithmetic

Small, explicit helpers for the date math used by renewal projection.

DESIGN DECISION: Month and year steps ROLL OVER instead of clamping.
Adding one month to Jan 31 gives Mar 3 (Mar 2 in a leap year), and adding
one year to Feb 29 gives Mar 1. The excess days of a too-short target month
spill into the next month. Renewal dates recorded by existing users were
computed this way, so we keep it.
"""

from datetime import datetime, timedelta

ONE_DAY = timedelta(days=1)


def add_days(dt: datetime, days: int) -> datetime:
    return dt + timedelta(days=days)


def add_months(dt: datetime, months: int) -> datetime:
    """
    Move `dt` by a number of calendar months, keeping time of day.

    The day of month is kept when the target month is long enough.
    Otherwise the overflow rolls into the following month.
    """
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1

    first_of_month = dt.replace(year=year, month=month, day=1)
    return first_of_month + timedelta(days=dt.day - 1)


def add_years(dt: datetime, years: int) -> datetime:
    return add_months(dt, 12 * years)


def days_between(start: datetime, end: datetime) -> int:
    """Whole days from `start` to `end`, floored."""
    return (end - start) // ONE_DAY


def start_of_month(dt: datetime) -> datetime:
    """Midnight on the first day of `dt`'s month."""
    return dt.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def end_of_month(dt: datetime) -> datetime:
    """
    Midnight on the last day of `dt`'s month.

    Note this is the START of the last day, so a renewal later that day
    falls outside a [start_of_month, end_of_month] window.
    """
    return add_months(start_of_month(dt), 1) - ONE_DAY
