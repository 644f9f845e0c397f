"""Date manipulation utilities"""

from datetime import date
from typing import List
from dateutil.relativedelta import relativedelta


def days_between(start: date, end: date) -> int:
    """Signed number of calendar days from start to end"""
    return (end - start).days


def days_past_due(due_date: date, today: date) -> int:
    """Days elapsed since due_date (negative while not yet due)"""
    return days_between(due_date, today)


def add_months(from_date: date, months: int) -> date:
    """
    Calendar month step.

    Days missing from the target month clamp to its last day
    (2024-01-31 + 1 month -> 2024-02-29).
    """
    return from_date + relativedelta(months=months)


def first_of_month(day: date) -> date:
    return day.replace(day=1)


def first_of_next_month(day: date) -> date:
    return first_of_month(day) + relativedelta(months=1)


def period_key(day: date) -> str:
    """Canonical month identity: YYYY-MM-01"""
    return first_of_month(day).isoformat()


def parse_period_key(key: str) -> date:
    """Inverse of period_key; rejects keys that are not a first-of-month date"""
    parsed = date.fromisoformat(key)
    if parsed.day != 1:
        raise ValueError(f"Period key must be the first of a month: {key}")
    return parsed


def iter_months(start: date, end: date) -> List[date]:
    """First-of-month dates from start's month through end's month (inclusive)"""
    months = []
    current = first_of_month(start)
    while current <= end:
        months.append(current)
        current = current + relativedelta(months=1)
    return months
