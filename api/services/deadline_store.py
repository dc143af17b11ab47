"""In-memory deadline collection used while the real store lives elsewhere.

The production collection is owned by the case management service; this
store stands in for it so the HTTP flows can be exercised end to end. It holds
the authoritative deadlines and recomputes every derived view (calendar grid,
filtered list, upcoming feed, reminders) from them on each call.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from pydantic import ValidationError

from api.models.schemas import (
    BulkLoadResponse,
    CalendarDayResponse,
    CalendarMonthResponse,
    Deadline,
    DeadlineCreateRequest,
    DeadlineFilters,
    DeadlineMutationResponse,
    DeadlinePage,
    DeadlineUpdateRequest,
    DeadlineView,
    UpcomingResponse,
)
from api.services.conflicts import ConflictChecker, ConflictReport, ConflictResultRouter
from collaborators import get_client
from core.clock import local_date
from core.settings import Settings, get_settings
from scheduler.calendar_grid import (
    WEEKDAY_HEADERS,
    CalendarDay,
    build_month_grid,
    deadlines_on,
    month_label,
    shift_month,
)
from scheduler.filters import apply_filters, paginate, sort_deadlines, upcoming_deadlines
from scheduler.priority import (
    PRIORITY_BADGE_COLORS,
    PRIORITY_DAY_BACKGROUNDS,
    STATUS_LABELS,
    badge_label,
    deadline_type_label,
    resolve_priority,
)
from scheduler.reminders import Reminder, ReminderBook, alert_schedule
from scheduler.urgency import classify_urgency

logger = logging.getLogger(__name__)


def load_deadlines(records: Iterable[Dict[str, Any]]) -> Tuple[List[Deadline], List[str]]:
    """Validate raw records one at a time.

    Malformed records are skipped and reported by id (or position when the id
    itself is missing) instead of failing the whole batch.
    """

    loaded: List[Deadline] = []
    skipped: List[str] = []
    for position, record in enumerate(records):
        label = str(record.get("id") or f"#{position}") if isinstance(record, dict) else f"#{position}"
        try:
            loaded.append(Deadline.model_validate(record))
        except ValidationError as exc:
            fields = ", ".join(".".join(str(part) for part in error["loc"]) for error in exc.errors())
            logger.warning("Skipping deadline %s: invalid %s", label, fields or "record")
            skipped.append(label)
    return loaded, skipped


def deadline_view(deadline: Deadline, now: datetime) -> DeadlineView:
    return DeadlineView(
        deadline=deadline,
        urgency=classify_urgency(deadline.deadline_date, now).to_view(),
        type_label=deadline_type_label(deadline.deadline_type),
        status_label=STATUS_LABELS[deadline.status],
    )


def day_summary(day: CalendarDay, now: datetime) -> CalendarDayResponse:
    priority = resolve_priority(day.deadlines)
    count = len(day.deadlines)
    return CalendarDayResponse(
        day=day.date,
        is_current_month=day.is_current_month,
        is_today=day.is_today,
        count=count,
        badge_label=badge_label(count) if count else None,
        priority=priority,
        badge_color=PRIORITY_BADGE_COLORS[priority] if priority else None,
        background=PRIORITY_DAY_BACKGROUNDS[priority] if priority else None,
        deadlines=[deadline_view(deadline, now) for deadline in day.deadlines],
    )


@dataclass
class MutationResult:
    deadline: Deadline
    conflicts: Optional[ConflictReport] = None

    def to_response(self) -> DeadlineMutationResponse:
        return DeadlineMutationResponse(
            deadline=self.deadline,
            conflicts=self.conflicts.to_response() if self.conflicts else None,
        )


class DeadlineStore:
    """Simple mutable deadline repository."""

    def __init__(self, checker: Optional[ConflictChecker] = None, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self._deadlines: Dict[str, Deadline] = {}
        self._lock = threading.Lock()
        self.conflicts = ConflictResultRouter(checker or get_client())
        self.reminders = ReminderBook()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def create(self, request: DeadlineCreateRequest, now: datetime) -> MutationResult:
        deadline = Deadline(
            id=uuid4().hex,
            created_at=now,
            updated_at=now,
            **request.model_dump(),
        )
        with self._lock:
            self._deadlines[deadline.id] = deadline
        logger.info("Created deadline %s for case %s", deadline.id, deadline.case_id)
        # The check only runs once the write above has landed.
        return MutationResult(deadline, self.conflicts.after_mutation(deadline.case_id))

    def update(self, deadline_id: str, request: DeadlineUpdateRequest, now: datetime) -> MutationResult:
        changes = request.model_dump(exclude_unset=True)
        with self._lock:
            current = self._deadlines[deadline_id]
            merged = {**current.model_dump(), **changes, "id": current.id, "updated_at": now}
            deadline = Deadline.model_validate(merged)
            self._deadlines[deadline_id] = deadline
        logger.info("Updated deadline %s (%s)", deadline_id, ", ".join(sorted(changes)) or "no fields")
        return MutationResult(deadline, self.conflicts.after_mutation(deadline.case_id))

    def delete(self, deadline_id: str) -> Deadline:
        with self._lock:
            deadline = self._deadlines.pop(deadline_id)
        logger.info("Deleted deadline %s", deadline_id)
        return deadline

    def load(self, records: Iterable[Dict[str, Any]]) -> BulkLoadResponse:
        """Add or replace deadlines from raw records, skipping malformed ones."""

        deadlines, skipped = load_deadlines(records)
        with self._lock:
            for deadline in deadlines:
                self._deadlines[deadline.id] = deadline
        if skipped:
            logger.warning("Bulk load skipped %d of %d records", len(skipped), len(deadlines) + len(skipped))
        return BulkLoadResponse(loaded=len(deadlines), skipped=skipped)

    def clear(self) -> None:
        with self._lock:
            self._deadlines.clear()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, deadline_id: str) -> Deadline:
        with self._lock:
            return self._deadlines[deadline_id]

    def snapshot(self) -> List[Deadline]:
        with self._lock:
            return list(self._deadlines.values())

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------
    def list_view(
        self,
        filters: DeadlineFilters,
        now: datetime,
        sort_key: str = "deadline_date",
        sort_order: str = "asc",
        page: int = 1,
        limit: int = 20,
    ) -> DeadlinePage:
        ordered = apply_filters(self.snapshot(), filters, sort_key=sort_key, sort_order=sort_order)
        window = paginate(ordered, page=page, limit=limit)
        return DeadlinePage(
            results=[deadline_view(deadline, now) for deadline in window.items],
            total=window.total,
            page=window.page,
            limit=window.limit,
            total_pages=window.total_pages,
        )

    def upcoming_view(self, now: datetime, window_days: Optional[int] = None) -> UpcomingResponse:
        days = self.settings.upcoming_window_days if window_days is None else window_days
        selected = upcoming_deadlines(self.snapshot(), days, now)
        return UpcomingResponse(window_days=days, results=[deadline_view(deadline, now) for deadline in selected])

    def calendar_view(self, year: int, month: int, now: datetime) -> CalendarMonthResponse:
        tz = self.settings.tz
        # One "today" for the whole grid.
        today = local_date(now, tz)
        grid = build_month_grid(year, month, self.snapshot(), today, tz)
        prev_year, prev_month = shift_month(year, month, -1)
        next_year, next_month = shift_month(year, month, 1)
        return CalendarMonthResponse(
            year=year,
            month=month,
            label=month_label(year, month),
            weekdays=list(WEEKDAY_HEADERS),
            previous={"year": prev_year, "month": prev_month},
            next={"year": next_year, "month": next_month},
            days=[day_summary(day, now) for day in grid],
        )

    def day_view(self, day: date, now: datetime) -> CalendarDayResponse:
        tz = self.settings.tz
        matching = sort_deadlines(deadlines_on(day, self.snapshot(), tz), "priority")
        cell = CalendarDay(
            date=day,
            is_current_month=True,
            is_today=day == local_date(now, tz),
            deadlines=tuple(matching),
        )
        return day_summary(cell, now)

    def alerts_for(self, deadline_id: str, exclude_weekends: Optional[bool] = None) -> List[Reminder]:
        if exclude_weekends is None:
            exclude_weekends = self.settings.alert_exclude_weekends
        return alert_schedule(self.get(deadline_id), self.settings.tz, exclude_weekends)

    def collect_due_reminders(self, now: datetime) -> List[Reminder]:
        tz = self.settings.tz
        return self.reminders.collect(
            self.snapshot(), local_date(now, tz), tz, self.settings.alert_exclude_weekends
        )


deadline_store = DeadlineStore()
"""Module-level singleton used by the API routes."""


__all__ = ["DeadlineStore", "MutationResult", "day_summary", "deadline_store", "deadline_view", "load_deadlines"]
