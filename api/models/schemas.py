"""Pydantic data models used by the FastAPI layer and the scheduling pipelines.

``Deadline`` is the authoritative record; everything the calendar, list and
upcoming views render is derived from a collection of them on every request.
Jobs and conflict reports are transient and live only in memory.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.clock import ensure_aware


class DeadlineType(str, Enum):
    """Deadline categories the UI knows how to label.

    ``Deadline.deadline_type`` is deliberately open: values outside this enum
    are accepted and displayed generically.
    """

    FILING = "filing"
    DISCOVERY = "discovery"
    MOTION = "motion"
    HEARING = "hearing"
    TRIAL = "trial"
    APPEAL = "appeal"
    RESPONSE = "response"
    EXPERT_REPORT = "expert_report"
    BRIEF = "brief"


class DeadlinePriority(str, Enum):
    """Urgency tiers, declared from most to least urgent."""

    CRITICAL = "critical"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class DeadlineStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    MISSED = "missed"
    EXTENDED = "extended"
    CANCELLED = "cancelled"


class JobType(str, Enum):
    """Asynchronous operations the remote services can run for a case."""

    DOCUMENT_TRIAGE = "document_triage"
    LEGISLATIVE_HISTORY = "legislative_history"
    EXPERT_DATA_PREP = "expert_data_prep"
    CENSUS_ALIGNMENT = "census_alignment"
    PRECEDENT_SEARCH = "precedent_search"
    COMPACTNESS_ANALYSIS = "compactness_analysis"
    REPORT_GENERATION = "report_generation"
    DOCUMENT_OCR = "document_ocr"
    ENTITY_EXTRACTION = "entity_extraction"
    PATTERN_DETECTION = "pattern_detection"


class JobStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ConflictSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ----------------------------------------------------------------------
# Deadlines
# ----------------------------------------------------------------------


def _normalise_intervals(value: List[int]) -> List[int]:
    if any(item < 0 for item in value):
        raise ValueError("alert intervals must be non-negative day counts")
    return sorted(set(value))


def _normalise_type(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class Deadline(BaseModel):
    """A single court or case deadline."""

    model_config = ConfigDict(frozen=True)

    id: str
    case_id: str
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    notes: Optional[str] = None
    deadline_type: Optional[str] = None
    priority: DeadlinePriority = DeadlinePriority.NORMAL
    status: DeadlineStatus = DeadlineStatus.PENDING
    deadline_date: datetime
    alert_intervals: List[int] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("deadline_date", "created_at", "updated_at")
    @classmethod
    def _aware_instants(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_aware(value) if value is not None else None

    @field_validator("alert_intervals")
    @classmethod
    def _sorted_intervals(cls, value: List[int]) -> List[int]:
        return _normalise_intervals(value)

    @field_validator("deadline_type")
    @classmethod
    def _blank_type(cls, value: Optional[str]) -> Optional[str]:
        return _normalise_type(value)


class DeadlineCreateRequest(BaseModel):
    case_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    notes: Optional[str] = None
    deadline_type: Optional[str] = None
    priority: DeadlinePriority = DeadlinePriority.NORMAL
    status: DeadlineStatus = DeadlineStatus.PENDING
    deadline_date: datetime
    alert_intervals: List[int] = Field(default_factory=list)

    @field_validator("alert_intervals")
    @classmethod
    def _sorted_intervals(cls, value: List[int]) -> List[int]:
        return _normalise_intervals(value)


class DeadlineUpdateRequest(BaseModel):
    """Partial update; only fields that are set are applied."""

    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    notes: Optional[str] = None
    deadline_type: Optional[str] = None
    priority: Optional[DeadlinePriority] = None
    status: Optional[DeadlineStatus] = None
    deadline_date: Optional[datetime] = None
    alert_intervals: Optional[List[int]] = None


class DeadlineFilters(BaseModel):
    """Conjunctive list filters; ``"all"`` leaves a predicate open."""

    case_id: str = "all"
    deadline_type: str = Field("all", min_length=1)
    priority: Union[DeadlinePriority, Literal["all"]] = "all"
    status: Union[DeadlineStatus, Literal["all"]] = "all"


class UrgencyView(BaseModel):
    days_until: int
    label: str
    is_urgent: bool


class DeadlineView(BaseModel):
    """A deadline plus the labels computed for it at render time."""

    deadline: Deadline
    urgency: UrgencyView
    type_label: str
    status_label: str


class DeadlinePage(BaseModel):
    results: List[DeadlineView]
    total: int
    page: int
    limit: int
    total_pages: int


class UpcomingResponse(BaseModel):
    window_days: int
    results: List[DeadlineView]


class BulkLoadRequest(BaseModel):
    records: List[Dict[str, Any]]


class BulkLoadResponse(BaseModel):
    loaded: int
    skipped: List[str] = Field(default_factory=list)


class ReminderView(BaseModel):
    deadline_id: str
    case_id: str
    label: str
    alert_date: date
    interval_days: int


class ReminderListResponse(BaseModel):
    reminders: List[ReminderView]


class DeadlineCalculationRequest(BaseModel):
    base_date: date
    duration_days: int = Field(..., ge=0)
    use_business_days: bool = False
    business_days_only: bool = False
    exclude_holidays: bool = True
    custom_holidays: List[date] = Field(default_factory=list)
    filing_cutoff_time: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")


class DeadlineCalculationResponse(BaseModel):
    deadline_date: date
    business_days: int
    calendar_days: int
    excluded_dates: List[date] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


# ----------------------------------------------------------------------
# Calendar
# ----------------------------------------------------------------------


class CalendarDayResponse(BaseModel):
    day: date
    is_current_month: bool
    is_today: bool
    count: int
    badge_label: Optional[str] = None
    priority: Optional[DeadlinePriority] = None
    badge_color: Optional[str] = None
    background: Optional[str] = None
    deadlines: List[DeadlineView] = Field(default_factory=list)


class CalendarMonthResponse(BaseModel):
    year: int
    month: int
    label: str
    weekdays: List[str]
    previous: Dict[str, int]
    next: Dict[str, int]
    days: List[CalendarDayResponse]


# ----------------------------------------------------------------------
# Conflicts
# ----------------------------------------------------------------------


class DeadlineConflict(BaseModel):
    deadline_id: str
    conflicts_with: List[str] = Field(default_factory=list)
    reason: str = ""
    severity: ConflictSeverity = ConflictSeverity.MEDIUM
    recommendation: str = ""


class ConflictReportResponse(BaseModel):
    case_id: str
    status: Literal["clear", "conflicts", "unknown"]
    conflicts: List[DeadlineConflict] = Field(default_factory=list)
    pairs: List[List[str]] = Field(default_factory=list)
    error: Optional[str] = None
    checked_at: datetime


class DeadlineMutationResponse(BaseModel):
    deadline: Deadline
    conflicts: Optional[ConflictReportResponse] = None


# ----------------------------------------------------------------------
# Jobs
# ----------------------------------------------------------------------


class Job(BaseModel):
    job_id: str
    case_id: str
    job_type: JobType
    status: JobStatus = JobStatus.RUNNING
    progress: int = Field(0, ge=0, le=100)
    remote_job_id: Optional[str] = None
    current_step: Optional[str] = None
    message: Optional[str] = None
    error_message: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    result: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)


class JobListResponse(BaseModel):
    jobs: List[Job]


class TriageRequest(BaseModel):
    document_ids: List[str] = Field(..., min_length=1)
    relevance_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)
    privilege_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)


class JobHandle(BaseModel):
    job_id: str


class RemoteJobStatus(BaseModel):
    """Job state as reported by the remote service (wider status set)."""

    status: Literal["pending", "queued", "running", "completed", "failed", "cancelled"]
    progress: int = 0
    current_step: Optional[str] = None
    message: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None


# ----------------------------------------------------------------------
# Documents awaiting triage
# ----------------------------------------------------------------------


class TriageDocument(BaseModel):
    id: str
    case_id: str
    filename: str
    uploaded_at: datetime
    triage_status: Optional[Literal["pending", "completed"]] = None
    relevance_score: Optional[float] = Field(None, ge=0.0, le=1.0)
    privilege_score: Optional[float] = Field(None, ge=0.0, le=1.0)


class TriageQueueRequest(BaseModel):
    documents: List[TriageDocument] = Field(default_factory=list)


class TriageQueueEntry(BaseModel):
    document: TriageDocument
    relevance_band: str
    privilege_band: str


class TriageQueuePage(BaseModel):
    view: str
    results: List[TriageQueueEntry]
    total: int
    page: int
    limit: int
    total_pages: int


# ----------------------------------------------------------------------
# Geographic collaborators
# ----------------------------------------------------------------------


class CompactnessRequest(BaseModel):
    geometry: Dict[str, Any]
    metrics: List[str] = Field(default_factory=lambda: ["polsby_popper", "reock", "convex_hull_ratio"])


class CompactnessScores(BaseModel):
    polsby_popper: Optional[float] = None
    reock: Optional[float] = None
    convex_hull_ratio: Optional[float] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AlignmentRequest(BaseModel):
    source: Dict[str, Any]
    target: Dict[str, Any]
    resolution: int = Field(8, ge=0, le=15)
    id_properties: Dict[str, str] = Field(default_factory=dict)


class CrosswalkEntry(BaseModel):
    source_id: str
    target_id: str
    cell_id: Optional[str] = None
    weight: float


class AlignmentResult(BaseModel):
    crosswalk: List[CrosswalkEntry] = Field(default_factory=list)
    quality_metrics: Dict[str, Any] = Field(default_factory=dict)


__all__ = [
    "AlignmentRequest",
    "AlignmentResult",
    "BulkLoadRequest",
    "BulkLoadResponse",
    "CalendarDayResponse",
    "CalendarMonthResponse",
    "CompactnessRequest",
    "CompactnessScores",
    "ConflictReportResponse",
    "ConflictSeverity",
    "CrosswalkEntry",
    "Deadline",
    "DeadlineCalculationRequest",
    "DeadlineCalculationResponse",
    "DeadlineConflict",
    "DeadlineCreateRequest",
    "DeadlineFilters",
    "DeadlineMutationResponse",
    "DeadlinePage",
    "DeadlinePriority",
    "DeadlineStatus",
    "DeadlineType",
    "DeadlineUpdateRequest",
    "DeadlineView",
    "Job",
    "JobHandle",
    "JobListResponse",
    "JobStatus",
    "JobType",
    "ReminderListResponse",
    "ReminderView",
    "RemoteJobStatus",
    "TriageDocument",
    "TriageQueueEntry",
    "TriageQueuePage",
    "TriageQueueRequest",
    "TriageRequest",
    "UpcomingResponse",
    "UrgencyView",
]
