"""Alert reminders derived from each deadline's alert intervals."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta, tzinfo
from typing import Iterable, List, Optional, Set, Tuple

from api.models.schemas import Deadline
from core.clock import local_date
from scheduler.business_days import previous_weekday
from scheduler.filters import OPEN_STATUSES


@dataclass(frozen=True)
class Reminder:
    deadline_id: str
    case_id: str
    label: str
    alert_date: date
    interval_days: int


def reminder_label(interval_days: int) -> str:
    if interval_days == 0:
        return "Due date"
    return f"{interval_days} day{'s' if interval_days != 1 else ''} before"


def alert_schedule(
    deadline: Deadline, tz: Optional[tzinfo] = None, exclude_weekends: bool = False
) -> List[Reminder]:
    """One reminder per alert interval, in ascending interval order.

    With ``exclude_weekends`` an alert landing on a Saturday or Sunday is
    sent on the Friday before instead.
    """

    due = local_date(deadline.deadline_date, tz)
    reminders: List[Reminder] = []
    for interval in deadline.alert_intervals:
        alert_date = due - timedelta(days=interval)
        if exclude_weekends:
            alert_date = previous_weekday(alert_date)
        reminders.append(
            Reminder(
                deadline_id=deadline.id,
                case_id=deadline.case_id,
                label=reminder_label(interval),
                alert_date=alert_date,
                interval_days=interval,
            )
        )
    return reminders


def due_reminders(
    deadlines: Iterable[Deadline],
    today: date,
    tz: Optional[tzinfo] = None,
    exclude_weekends: bool = False,
) -> List[Reminder]:
    """Reminders that fall on ``today`` for deadlines that are still open."""

    due: List[Reminder] = []
    for deadline in deadlines:
        if deadline.status not in OPEN_STATUSES:
            continue
        due.extend(
            reminder
            for reminder in alert_schedule(deadline, tz, exclude_weekends)
            if reminder.alert_date == today
        )
    return due


class ReminderBook:
    """Remembers which reminders were already sent so each goes out once."""

    def __init__(self) -> None:
        self._sent: Set[Tuple[str, int, date]] = set()

    def collect(
        self,
        deadlines: Iterable[Deadline],
        today: date,
        tz: Optional[tzinfo] = None,
        exclude_weekends: bool = False,
    ) -> List[Reminder]:
        # Keys for earlier days can never match again.
        self._sent = {key for key in self._sent if key[2] >= today}
        fresh: List[Reminder] = []
        for reminder in due_reminders(deadlines, today, tz, exclude_weekends):
            key = (reminder.deadline_id, reminder.interval_days, reminder.alert_date)
            if key in self._sent:
                continue
            self._sent.add(key)
            fresh.append(reminder)
        return fresh

    def all(self) -> List[Tuple[str, int, date]]:
        return sorted(self._sent)
