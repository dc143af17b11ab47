"""Court-day arithmetic: weekends, US federal holidays and deadline calculation.

Federal holidays are computed by rule for any year on their actual dates.
Weekend dates are already excluded, so no observed-day shift is applied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from functools import lru_cache
from typing import FrozenSet, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)
MONDAY, THURSDAY, SATURDAY = 0, 3, 5


def _nth_weekday(year: int, month: int, weekday: int, n: int) -> date:
    first = date(year, month, 1)
    return first + timedelta(days=(weekday - first.weekday()) % 7 + 7 * (n - 1))


def _last_weekday(year: int, month: int, weekday: int) -> date:
    last = date(year, month + 1, 1) - ONE_DAY
    return last - timedelta(days=(last.weekday() - weekday) % 7)


@lru_cache(maxsize=32)
def federal_holidays(year: int) -> FrozenSet[date]:
    return frozenset(
        {
            date(year, 1, 1),  # New Year's Day
            _nth_weekday(year, 1, MONDAY, 3),  # Martin Luther King Jr. Day
            _nth_weekday(year, 2, MONDAY, 3),  # Presidents Day
            _last_weekday(year, 5, MONDAY),  # Memorial Day
            date(year, 6, 19),  # Juneteenth
            date(year, 7, 4),  # Independence Day
            _nth_weekday(year, 9, MONDAY, 1),  # Labor Day
            _nth_weekday(year, 10, MONDAY, 2),  # Columbus Day
            date(year, 11, 11),  # Veterans Day
            _nth_weekday(year, 11, THURSDAY, 4),  # Thanksgiving
            date(year, 12, 25),  # Christmas
        }
    )


def is_weekend(day: date) -> bool:
    return day.weekday() >= SATURDAY


def previous_weekday(day: date) -> date:
    """Move a Saturday or Sunday back to the Friday before it."""

    while is_weekend(day):
        day -= ONE_DAY
    return day


@dataclass(frozen=True)
class HolidayCalendar:
    """Which dates a court treats as closed besides weekends."""

    federal: bool = True
    custom: FrozenSet[date] = frozenset()

    def is_holiday(self, day: date) -> bool:
        return day in self.custom or (self.federal and day in federal_holidays(day.year))

    def is_business_day(self, day: date) -> bool:
        return not is_weekend(day) and not self.is_holiday(day)

    def next_business_day(self, day: date) -> date:
        while not self.is_business_day(day):
            day += ONE_DAY
        return day

    def add_business_days(self, start: date, days: int) -> Tuple[date, List[date]]:
        """Step forward ``days`` business days; also return the dates skipped."""

        current = start
        skipped: List[date] = []
        added = 0
        while added < days:
            current += ONE_DAY
            if self.is_business_day(current):
                added += 1
            else:
                skipped.append(current)
        return current, skipped

    def count_business_days(self, start: date, end: date) -> int:
        """Business days in ``[start, end]``, both ends included."""

        count = 0
        current = start
        while current <= end:
            if self.is_business_day(current):
                count += 1
            current += ONE_DAY
        return count


@dataclass(frozen=True)
class DeadlineCalculation:
    deadline_date: date
    business_days: int
    calendar_days: int
    excluded_dates: List[date] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def calculate_deadline(
    base_date: date,
    duration_days: int,
    use_business_days: bool = False,
    business_days_only: bool = False,
    exclude_holidays: bool = True,
    custom_holidays: Iterable[date] = (),
    filing_cutoff_time: Optional[str] = None,
) -> DeadlineCalculation:
    """Count ``duration_days`` from a trigger date.

    Business-day counting skips weekends and holidays. With
    ``business_days_only`` a result landing on a closed day rolls forward to
    the next business day and a warning says so.
    """

    if duration_days < 0:
        raise ValueError(f"duration_days must not be negative, got {duration_days}")
    holidays = HolidayCalendar(federal=exclude_holidays, custom=frozenset(custom_holidays))
    warnings: List[str] = []
    excluded: List[date] = []

    if use_business_days:
        deadline, excluded = holidays.add_business_days(base_date, duration_days)
    else:
        deadline = base_date + timedelta(days=duration_days)

    if business_days_only:
        adjusted = holidays.next_business_day(deadline)
        if adjusted != deadline:
            warnings.append(f"Deadline adjusted from {deadline.isoformat()} to next business day")
            deadline = adjusted

    if filing_cutoff_time:
        warnings.append(
            f"Court filing cutoff time: {filing_cutoff_time}. "
            f"Ensure filing is submitted before this time on {deadline.isoformat()}."
        )

    result = DeadlineCalculation(
        deadline_date=deadline,
        business_days=holidays.count_business_days(base_date, deadline),
        calendar_days=(deadline - base_date).days,
        excluded_dates=excluded,
        warnings=warnings,
    )
    logger.info(
        "Calculated deadline %s from %s (+%d %s days)",
        deadline.isoformat(),
        base_date.isoformat(),
        duration_days,
        "business" if use_business_days else "calendar",
    )
    return result
