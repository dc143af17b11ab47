"""HTTP routes for the deadline collection and its calendar views.

Every read is recomputed from the ``DeadlineStore`` using a single ``now``
captured at the start of the request, so one response never mixes two clocks.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import ValidationError

from api.models.schemas import (
    BulkLoadRequest,
    BulkLoadResponse,
    CalendarDayResponse,
    CalendarMonthResponse,
    ConflictReportResponse,
    Deadline,
    DeadlineCalculationRequest,
    DeadlineCalculationResponse,
    DeadlineCreateRequest,
    DeadlineFilters,
    DeadlineMutationResponse,
    DeadlinePage,
    DeadlineUpdateRequest,
    DeadlineView,
    ReminderListResponse,
    ReminderView,
    UpcomingResponse,
)
from api.services.deadline_store import deadline_store, deadline_view
from core.clock import utcnow
from scheduler.business_days import calculate_deadline
from scheduler.reminders import Reminder

router = APIRouter(prefix="/api", tags=["deadlines"])


@router.get("/deadlines", response_model=DeadlinePage)
def list_deadlines(
    case_id: str = "all",
    deadline_type: str = "all",
    priority: str = "all",
    status: str = "all",
    sort_key: str = "deadline_date",
    sort_order: str = "asc",
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> DeadlinePage:
    """Return one page of deadlines matching every supplied filter."""

    try:
        filters = DeadlineFilters(case_id=case_id, deadline_type=deadline_type, priority=priority, status=status)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=_field_errors(exc)) from exc
    try:
        return deadline_store.list_view(filters, utcnow(), sort_key, sort_order, page, limit)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/deadlines", response_model=DeadlineMutationResponse, status_code=201)
def create_deadline(request: DeadlineCreateRequest) -> DeadlineMutationResponse:
    """Save a new deadline and report conflicts found for its case."""

    return deadline_store.create(request, utcnow()).to_response()


@router.post("/deadlines/bulk", response_model=BulkLoadResponse)
def bulk_load(request: BulkLoadRequest) -> BulkLoadResponse:
    """Load raw deadline records, skipping the malformed ones."""

    return deadline_store.load(request.records)


@router.get("/deadlines/upcoming", response_model=UpcomingResponse)
def upcoming(days: Optional[int] = Query(None, ge=0)) -> UpcomingResponse:
    """Open deadlines falling due within the next ``days`` days."""

    return deadline_store.upcoming_view(utcnow(), days)


@router.post("/deadlines/calculate", response_model=DeadlineCalculationResponse)
def calculate(request: DeadlineCalculationRequest) -> DeadlineCalculationResponse:
    """Work out a due date from a trigger date and a period in calendar or business days."""

    result = calculate_deadline(
        request.base_date,
        request.duration_days,
        use_business_days=request.use_business_days,
        business_days_only=request.business_days_only,
        exclude_holidays=request.exclude_holidays,
        custom_holidays=request.custom_holidays,
        filing_cutoff_time=request.filing_cutoff_time,
    )
    return DeadlineCalculationResponse(
        deadline_date=result.deadline_date,
        business_days=result.business_days,
        calendar_days=result.calendar_days,
        excluded_dates=result.excluded_dates,
        warnings=result.warnings,
    )


@router.post("/deadlines/reminders", response_model=ReminderListResponse)
def collect_reminders() -> ReminderListResponse:
    """Reminders due today that have not been reported yet."""

    reminders = deadline_store.collect_due_reminders(utcnow())
    return ReminderListResponse(reminders=[_reminder_view(reminder) for reminder in reminders])


@router.get("/deadlines/{deadline_id}", response_model=DeadlineView)
def get_deadline(deadline_id: str) -> DeadlineView:
    try:
        return deadline_view(deadline_store.get(deadline_id), utcnow())
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Deadline {deadline_id} not found") from exc


@router.patch("/deadlines/{deadline_id}", response_model=DeadlineMutationResponse)
def update_deadline(deadline_id: str, request: DeadlineUpdateRequest) -> DeadlineMutationResponse:
    """Apply a partial update; the result is validated as a whole deadline."""

    try:
        return deadline_store.update(deadline_id, request, utcnow()).to_response()
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Deadline {deadline_id} not found") from exc
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=_field_errors(exc)) from exc


@router.delete("/deadlines/{deadline_id}", response_model=Deadline)
def delete_deadline(deadline_id: str) -> Deadline:
    try:
        return deadline_store.delete(deadline_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Deadline {deadline_id} not found") from exc


@router.get("/deadlines/{deadline_id}/alerts", response_model=ReminderListResponse)
def deadline_alerts(deadline_id: str, exclude_weekends: Optional[bool] = None) -> ReminderListResponse:
    """The full alert schedule for one deadline."""

    try:
        reminders = deadline_store.alerts_for(deadline_id, exclude_weekends)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Deadline {deadline_id} not found") from exc
    return ReminderListResponse(reminders=[_reminder_view(reminder) for reminder in reminders])


@router.get("/calendar/day/{day}", response_model=CalendarDayResponse)
def calendar_day(day: date) -> CalendarDayResponse:
    """Deadlines due on a single day, most important first."""

    return deadline_store.day_view(day, utcnow())


@router.get("/calendar/{year}/{month}", response_model=CalendarMonthResponse)
def calendar_month(year: int, month: int) -> CalendarMonthResponse:
    """Return the six-week grid for a month with per-day summaries."""

    try:
        return deadline_store.calendar_view(year, month, utcnow())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/cases/{case_id}/conflicts", response_model=ConflictReportResponse)
def case_conflicts(case_id: str) -> ConflictReportResponse:
    """Latest conflict check result recorded for a case."""

    report = deadline_store.conflicts.latest(case_id)
    if report is None:
        raise HTTPException(status_code=404, detail=f"No conflict check has run for case {case_id}")
    return report.to_response()


def _reminder_view(reminder: Reminder) -> ReminderView:
    return ReminderView(
        deadline_id=reminder.deadline_id,
        case_id=reminder.case_id,
        label=reminder.label,
        alert_date=reminder.alert_date,
        interval_days=reminder.interval_days,
    )


def _field_errors(exc: ValidationError) -> List[Dict[str, Any]]:
    return [{"loc": list(error["loc"]), "msg": error["msg"]} for error in exc.errors()]
