"""Pure scheduling views over deadline collections."""

from .business_days import HolidayCalendar, calculate_deadline, federal_holidays
from .calendar_grid import CalendarDay, build_month_grid, deadlines_on, shift_month
from .filters import Page, apply_filters, paginate, upcoming_deadlines
from .priority import resolve_priority
from .reminders import Reminder, ReminderBook, alert_schedule, due_reminders
from .triage_queue import triage_queue
from .urgency import Urgency, classify_urgency, is_deadline_urgent

__all__ = [
    "CalendarDay",
    "HolidayCalendar",
    "Page",
    "Reminder",
    "ReminderBook",
    "Urgency",
    "alert_schedule",
    "apply_filters",
    "build_month_grid",
    "calculate_deadline",
    "classify_urgency",
    "deadlines_on",
    "due_reminders",
    "federal_holidays",
    "is_deadline_urgent",
    "paginate",
    "resolve_priority",
    "shift_month",
    "triage_queue",
    "upcoming_deadlines",
]
