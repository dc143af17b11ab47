"""Month grid construction and day bucketing for the deadline calendar.

A month is always rendered as six Sunday-first weeks (42 cells): the tail of
the previous month, every day of the requested month, then the head of the
next month. Deadlines are bucketed by the calendar day of ``deadline_date``
in the display timezone, ignoring time of day.
"""

from __future__ import annotations

import calendar
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, tzinfo
from typing import Dict, Iterable, List, Optional, Tuple

from api.models.schemas import Deadline
from core.clock import local_date

GRID_CELLS = 42
WEEKDAY_HEADERS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


@dataclass(frozen=True)
class CalendarDay:
    date: date
    is_current_month: bool
    is_today: bool
    deadlines: Tuple[Deadline, ...] = ()


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def first_weekday_index(year: int, month: int) -> int:
    """Column of day 1 in a Sunday-first week (0 = Sunday)."""

    # date.weekday() counts from Monday.
    return (date(year, month, 1).weekday() + 1) % 7


def shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    """Move ``delta`` months from (year, month), rolling the year as needed."""

    _check_month(month)
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def month_label(year: int, month: int) -> str:
    return f"{calendar.month_name[month]} {year}"


def index_by_day(deadlines: Iterable[Deadline], tz: Optional[tzinfo] = None) -> Dict[date, List[Deadline]]:
    """Group deadlines by local calendar day, keeping input order per day."""

    buckets: Dict[date, List[Deadline]] = defaultdict(list)
    for deadline in deadlines:
        buckets[local_date(deadline.deadline_date, tz)].append(deadline)
    return buckets


def deadlines_on(day: date, deadlines: Iterable[Deadline], tz: Optional[tzinfo] = None) -> List[Deadline]:
    return [deadline for deadline in deadlines if local_date(deadline.deadline_date, tz) == day]


def build_month_grid(
    year: int,
    month: int,
    deadlines: Iterable[Deadline],
    today: date,
    tz: Optional[tzinfo] = None,
) -> List[CalendarDay]:
    """Return the 42 cells covering ``month`` of ``year`` (month is 1-12)."""

    _check_month(month)
    buckets = index_by_day(deadlines, tz)

    prev_year, prev_month = shift_month(year, month, -1)
    next_year, next_month = shift_month(year, month, 1)
    leading = first_weekday_index(year, month)
    prev_days = days_in_month(prev_year, prev_month)

    dates: List[Tuple[date, bool]] = []
    for offset in range(leading - 1, -1, -1):
        dates.append((date(prev_year, prev_month, prev_days - offset), False))
    for day in range(1, days_in_month(year, month) + 1):
        dates.append((date(year, month, day), True))
    for day in range(1, GRID_CELLS - len(dates) + 1):
        dates.append((date(next_year, next_month, day), False))

    return [
        CalendarDay(
            date=cell_date,
            is_current_month=in_month,
            is_today=cell_date == today,
            deadlines=tuple(buckets.get(cell_date, ())),
        )
        for cell_date, in_month in dates
    ]


def _check_month(month: int) -> None:
    if not 1 <= month <= 12:
        raise ValueError(f"month must be between 1 and 12, got {month}")
