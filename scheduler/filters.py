"""Filter, sort and window views over a deadline collection.

Every function here returns a new list and leaves its input untouched, so the
views can be recomputed on each request from the authoritative collection.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generic, Iterable, List, Sequence, TypeVar

from api.models.schemas import Deadline, DeadlineFilters, DeadlineStatus
from scheduler.priority import PRIORITY_RANK
from scheduler.urgency import days_until

T = TypeVar("T")

ALL = "all"
SORT_ORDERS = ("asc", "desc")
OPEN_STATUSES = frozenset({DeadlineStatus.PENDING, DeadlineStatus.EXTENDED})
MAX_PAGE_SIZE = 100

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

SORT_KEYS: Dict[str, Callable[[Deadline], Any]] = {
    "deadline_date": lambda d: d.deadline_date,
    "priority": lambda d: PRIORITY_RANK[d.priority],
    "title": lambda d: d.title.casefold(),
    "status": lambda d: d.status.value,
    "deadline_type": lambda d: d.deadline_type or "",
    "created_at": lambda d: d.created_at or _EPOCH,
}


def matches(deadline: Deadline, filters: DeadlineFilters) -> bool:
    if filters.case_id != ALL and deadline.case_id != filters.case_id:
        return False
    if filters.deadline_type != ALL and deadline.deadline_type != filters.deadline_type:
        return False
    if filters.priority != ALL and deadline.priority != filters.priority:
        return False
    if filters.status != ALL and deadline.status != filters.status:
        return False
    return True


def sort_deadlines(
    deadlines: Iterable[Deadline], sort_key: str = "deadline_date", sort_order: str = "asc"
) -> List[Deadline]:
    """Stable sort; equal keys keep their input order in either direction."""

    if sort_key not in SORT_KEYS:
        raise ValueError(f"sort_key must be one of {', '.join(SORT_KEYS)}, got {sort_key!r}")
    if sort_order not in SORT_ORDERS:
        raise ValueError(f"sort_order must be 'asc' or 'desc', got {sort_order!r}")
    return sorted(deadlines, key=SORT_KEYS[sort_key], reverse=sort_order == "desc")


def apply_filters(
    deadlines: Iterable[Deadline],
    filters: DeadlineFilters | None = None,
    sort_key: str = "deadline_date",
    sort_order: str = "asc",
) -> List[Deadline]:
    filters = filters or DeadlineFilters()
    return sort_deadlines(
        (deadline for deadline in deadlines if matches(deadline, filters)),
        sort_key=sort_key,
        sort_order=sort_order,
    )


def upcoming_deadlines(deadlines: Iterable[Deadline], window_days: int, now: datetime) -> List[Deadline]:
    """Open deadlines due between now and ``window_days`` ahead, soonest first.

    Overdue deadlines are left out; the window only looks forward.
    """

    if window_days < 0:
        raise ValueError("window_days must not be negative")
    selected = [
        deadline
        for deadline in deadlines
        if deadline.status in OPEN_STATUSES and 0 <= days_until(deadline.deadline_date, now) <= window_days
    ]
    return sort_deadlines(selected, "deadline_date", "asc")


@dataclass(frozen=True)
class Page(Generic[T]):
    items: List[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0


def paginate(items: Sequence[T], page: int = 1, limit: int = 20) -> Page[T]:
    page = max(1, page)
    limit = min(max(1, limit), MAX_PAGE_SIZE)
    start = (page - 1) * limit
    return Page(items=list(items[start : start + limit]), total=len(items), page=page, limit=limit)
