"""Days-until arithmetic and the urgency labels shown next to each deadline.

The result depends on the current time, so it is recomputed on every render
and never stored on the deadline record.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from api.models.schemas import Deadline, DeadlineStatus, UrgencyView
from core.clock import ensure_aware

ONE_DAY = timedelta(days=1)
URGENT_WITHIN_DAYS = 7
NEAR_TERM_DAYS = 30


@dataclass(frozen=True)
class Urgency:
    days_until: int
    label: str
    is_urgent: bool

    def to_view(self) -> UrgencyView:
        return UrgencyView(days_until=self.days_until, label=self.label, is_urgent=self.is_urgent)


def days_until(deadline_date: datetime, now: datetime) -> int:
    """Whole days remaining, rounded up: 23 hours away is one day away."""

    delta = ensure_aware(deadline_date) - ensure_aware(now)
    return math.ceil(delta / ONE_DAY)


def classify_urgency(deadline_date: datetime, now: datetime) -> Urgency:
    days = days_until(deadline_date, now)
    if days < 0:
        return Urgency(days, f"{abs(days)} days overdue", True)
    if days == 0:
        return Urgency(days, "Due today", True)
    if days == 1:
        return Urgency(days, "Due tomorrow", True)
    if days <= URGENT_WITHIN_DAYS:
        return Urgency(days, f"{days} days remaining", True)
    if days <= NEAR_TERM_DAYS:
        return Urgency(days, f"{days} days remaining", False)
    weeks = days // 7
    return Urgency(days, f"{weeks} week{'s' if weeks != 1 else ''} remaining", False)


def is_deadline_urgent(deadline: Deadline, now: datetime) -> bool:
    """Pending deadlines due within a week, overdue ones included."""

    if deadline.status != DeadlineStatus.PENDING:
        return False
    return days_until(deadline.deadline_date, now) <= URGENT_WITHIN_DAYS
