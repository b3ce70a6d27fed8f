from __future__ import annotations

import calendar as _calendar
from datetime import date, datetime

from investor_leasing.errors import InvalidInputError


def add_months(dt: date, months: int) -> date:
    """
    Shift `dt` by a number of calendar months.
    The day is clamped to the last day of the target month (Jan 31 + 1 -> Feb 28/29).
    """
    if isinstance(dt, datetime):
        dt = dt.date()
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, _calendar.monthrange(year, month)[1])
    return date(year, month, day)


def parse_date(value: str | date) -> date:
    """Accept a date, YYYY-MM-DD, an ISO timestamp, or YYYY-MM (first of month)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        if len(text) == 7:
            return date.fromisoformat(text + "-01")
        if len(text) > 10:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return date.fromisoformat(text)
    except ValueError as e:
        raise InvalidInputError(f"invalid date: {value!r}") from e
