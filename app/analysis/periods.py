# ==============================================================================
# app/analysis/periods.py
# ------------------------------------------------------------------------------
# Calendar helpers: month ranges and the week-of-month layout used by the
# weekly bonus records (week n covers days (n-1)*7+1 .. min(n*7, last day)).
# ==============================================================================

import calendar
from datetime import date, datetime, timedelta


def as_date(value):
    """Accepts a date, a datetime or an ISO 'YYYY-MM-DD' string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def month_range(month, year):
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def days_in_month(month, year):
    return calendar.monthrange(year, month)[1]


def weeks_in_month(month, year):
    """4 weeks, or 5 when the month has more than 28 days."""
    return 5 if days_in_month(month, year) > 28 else 4


def week_range(week_number, month, year):
    """First and last date of a week of the month."""
    last_day = days_in_month(month, year)
    if week_number < 1 or week_number > weeks_in_month(month, year):
        raise ValueError(f"Week {week_number} does not exist in {year}-{month:02d}")
    first = (week_number - 1) * 7 + 1
    last = min(week_number * 7, last_day)
    return date(year, month, first), date(year, month, last)


def iter_days(start, end):
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def sunday_week_start(day):
    """The Sunday on or before `day` (business weeks run Sunday to Saturday)."""
    return day - timedelta(days=(day.weekday() + 1) % 7)
