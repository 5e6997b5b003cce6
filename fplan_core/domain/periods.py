from __future__ import annotations

import calendar
import datetime as dt
from typing import List, Tuple

import pandas as pd


MONTHLY = "monthly"
QUARTERLY = "quarterly"
YEARLY = "yearly"
GRANULARITIES = (MONTHLY, QUARTERLY, YEARLY)


def month_start(date: dt.date) -> dt.date:
    return dt.date(date.year, date.month, 1)


def month_end(date: dt.date) -> dt.date:
    return dt.date(date.year, date.month, calendar.monthrange(date.year, date.month)[1])


def add_months(date: dt.date, months: int) -> dt.date:
    """Shift by whole calendar months, clamping the day to the target month's length."""
    return (pd.Timestamp(date) + pd.DateOffset(months=months)).date()


def same_month(a: dt.date, b: dt.date) -> bool:
    return a.year == b.year and a.month == b.month


def month_index(date: dt.date) -> int:
    """Months elapsed since year 0; differences give whole-month distances."""
    return date.year * 12 + (date.month - 1)


def months_between(start: dt.date, end: dt.date) -> int:
    return month_index(end) - month_index(start)


def _check(granularity: str) -> None:
    if granularity not in GRANULARITIES:
        raise ValueError(f"Unknown granularity: {granularity!r}")


def quarter_of(date: dt.date) -> int:
    return (date.month - 1) // 3 + 1


def period_key(date: dt.date, granularity: str = MONTHLY) -> str:
    """
    Calendar bucket key for a date:
    - monthly   -> "YYYY-MM"
    - quarterly -> "YYYY-Qn"
    - yearly    -> "YYYY"
    Keys of one granularity sort lexicographically in chronological order.
    """
    _check(granularity)
    if granularity == MONTHLY:
        return f"{date.year:04d}-{date.month:02d}"
    if granularity == QUARTERLY:
        return f"{date.year:04d}-Q{quarter_of(date)}"
    return f"{date.year:04d}"


def period_bounds(date: dt.date, granularity: str = MONTHLY) -> Tuple[dt.date, dt.date]:
    """First and last calendar day of the bucket containing ``date``."""
    _check(granularity)
    if granularity == MONTHLY:
        return month_start(date), month_end(date)
    if granularity == QUARTERLY:
        first_month = (quarter_of(date) - 1) * 3 + 1
        start = dt.date(date.year, first_month, 1)
        return start, month_end(dt.date(date.year, first_month + 2, 1))
    return dt.date(date.year, 1, 1), dt.date(date.year, 12, 31)


def month_range(start: dt.date, end: dt.date) -> List[dt.date]:
    """First-of-month dates from the month of ``start`` through the month of ``end``."""
    if end < start:
        return []
    months = pd.period_range(start=month_start(start), end=month_start(end), freq="M")
    return [p.to_timestamp().date() for p in months]


def periods_between(start: dt.date, end: dt.date, granularity: str = MONTHLY) -> List[str]:
    """
    Ordered period keys covering [start, end], inclusive of both endpoints'
    containing periods. An inverted range yields an empty list.
    """
    _check(granularity)
    keys: List[str] = []
    for month in month_range(start, end):
        key = period_key(month, granularity)
        if not keys or keys[-1] != key:
            keys.append(key)
    return keys


def parse_month_key(key: str) -> dt.date:
    year, month = key.split("-")
    return dt.date(int(year), int(month), 1)
