"""
utils/date_utils.py — TRAINREG
===============================
Calendar rules of the weekly course cycle.

  - a period starts on a Monday and lasts Course.PERIOD_DAYS days
  - a trainee is assigned to the first period starting on/after the medical exam
  - the medical exam covers a period if it is not after the period start and
    not older than Course.MEDICAL_VALIDITY_MONTHS calendar months
"""
from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Tuple, Union

from constants import Course

DateLike = Union[date, datetime, str]


def to_date(value: DateLike) -> date:
    """Accepts date, datetime or an ISO "YYYY-MM-DD" string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise TypeError(f"Unsupported date value: {value!r}")


def next_monday(d: DateLike) -> date:
    """d itself when it is a Monday, otherwise the following Monday."""
    d = to_date(d)
    return d + timedelta(days=(7 - d.weekday()) % 7)


def period_end(start: date) -> date:
    return start + timedelta(days=Course.PERIOD_DAYS)


def compute_period(medical_date: DateLike) -> Tuple[date, date]:
    """(start, end) of the first period a trainee with this medical date can join."""
    start = next_monday(medical_date)
    return start, period_end(start)


def subtract_months(d: date, months: int) -> date:
    """Calendar-month subtraction; the day is clamped to the target month's end."""
    total = d.year * 12 + (d.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def is_medical_valid_for_period(medical_date: DateLike, period_start: DateLike) -> bool:
    medical_date = to_date(medical_date)
    period_start = to_date(period_start)
    earliest = subtract_months(period_start, Course.MEDICAL_VALIDITY_MONTHS)
    return earliest <= medical_date <= period_start


def lookahead_periods(base: date) -> list:
    """The base period followed by Course.LOOKAHEAD_PERIODS upcoming ones."""
    return [base + timedelta(days=Course.PERIOD_DAYS * i)
            for i in range(Course.LOOKAHEAD_PERIODS + 1)]
