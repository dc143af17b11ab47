"""Priority resolution and the display tables keyed by deadline enums."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable, Optional, Type, TypeVar

from api.models.schemas import Deadline, DeadlinePriority, DeadlineStatus, DeadlineType, JobType

E = TypeVar("E", bound=Enum)

PRIORITY_ORDER = (
    DeadlinePriority.CRITICAL,
    DeadlinePriority.HIGH,
    DeadlinePriority.NORMAL,
    DeadlinePriority.LOW,
)
PRIORITY_RANK: Dict[DeadlinePriority, int] = {priority: rank for rank, priority in enumerate(PRIORITY_ORDER)}


def resolve_priority(deadlines: Iterable[Deadline]) -> Optional[DeadlinePriority]:
    """Return the most urgent priority present, or ``None`` for no deadlines."""

    present = {deadline.priority for deadline in deadlines}
    for priority in PRIORITY_ORDER:
        if priority in present:
            return priority
    return None


def _exhaustive(table: Dict[E, str], enum_cls: Type[E]) -> Dict[E, str]:
    missing = [member.value for member in enum_cls if member not in table]
    if missing:
        raise RuntimeError(f"{enum_cls.__name__} table is missing {', '.join(missing)}")
    return table


PRIORITY_BADGE_COLORS = _exhaustive(
    {
        DeadlinePriority.CRITICAL: "red",
        DeadlinePriority.HIGH: "orange",
        DeadlinePriority.NORMAL: "yellow",
        DeadlinePriority.LOW: "blue",
    },
    DeadlinePriority,
)

PRIORITY_DAY_BACKGROUNDS = _exhaustive(
    {
        DeadlinePriority.CRITICAL: "red-50",
        DeadlinePriority.HIGH: "orange-50",
        DeadlinePriority.NORMAL: "yellow-50",
        DeadlinePriority.LOW: "blue-50",
    },
    DeadlinePriority,
)

STATUS_LABELS = _exhaustive(
    {
        DeadlineStatus.PENDING: "Pending",
        DeadlineStatus.COMPLETED: "Completed",
        DeadlineStatus.MISSED: "Missed",
        DeadlineStatus.EXTENDED: "Extended",
        DeadlineStatus.CANCELLED: "Cancelled",
    },
    DeadlineStatus,
)

DEADLINE_TYPE_LABELS = _exhaustive(
    {
        DeadlineType.FILING: "Filing",
        DeadlineType.DISCOVERY: "Discovery",
        DeadlineType.MOTION: "Motion",
        DeadlineType.HEARING: "Hearing",
        DeadlineType.TRIAL: "Trial",
        DeadlineType.APPEAL: "Appeal",
        DeadlineType.RESPONSE: "Response",
        DeadlineType.EXPERT_REPORT: "Expert Report",
        DeadlineType.BRIEF: "Brief",
    },
    DeadlineType,
)

JOB_TYPE_LABELS = _exhaustive(
    {
        JobType.DOCUMENT_TRIAGE: "Document Triage",
        JobType.LEGISLATIVE_HISTORY: "Legislative History",
        JobType.EXPERT_DATA_PREP: "Expert Data Preparation",
        JobType.CENSUS_ALIGNMENT: "Census Alignment",
        JobType.PRECEDENT_SEARCH: "Precedent Search",
        JobType.COMPACTNESS_ANALYSIS: "Compactness Analysis",
        JobType.REPORT_GENERATION: "Report Generation",
        JobType.DOCUMENT_OCR: "Document OCR",
        JobType.ENTITY_EXTRACTION: "Entity Extraction",
        JobType.PATTERN_DETECTION: "Pattern Detection",
    },
    JobType,
)


def deadline_type_label(value: Optional[str]) -> str:
    """Label for the open ``deadline_type`` field; unknown values are title-cased."""

    if not value:
        return "General"
    try:
        return DEADLINE_TYPE_LABELS[DeadlineType(value)]
    except ValueError:
        return value.replace("_", " ").title()


def badge_label(count: int) -> str:
    return f"{count} deadline{'s' if count != 1 else ''}"
