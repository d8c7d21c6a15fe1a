"""Calendar-month arithmetic on plain dates."""

from __future__ import annotations

import calendar
from datetime import date
from typing import Tuple


def month_start(day: date) -> date:
    return day.replace(day=1)


def month_end(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def month_bounds(day: date) -> Tuple[date, date]:
    """First and last day of the month containing ``day``."""
    return month_start(day), month_end(day)


def shift_months(day: date, months: int) -> date:
    """Move ``day`` by ``months`` calendar months, clamping to the month's length."""
    index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(index, 12)
    last = calendar.monthrange(year, month + 1)[1]
    return date(year, month + 1, min(day.day, last))


def whole_months_between(earlier: date, later: date) -> int:
    """Number of full calendar months from ``earlier`` to ``later``.

    A month is complete once the same day-of-month is reached, or the end of
    a shorter month: Jan 31 -> Feb 29 counts as one month.  Negative when
    ``later`` precedes ``earlier``.
    """
    if later < earlier:
        return -whole_months_between(later, earlier)
    months = (later.year - earlier.year) * 12 + (later.month - earlier.month)
    if later.day < earlier.day and later != month_end(later):
        months -= 1
    return months
