"""Filtering and ordering of a case's documents on the triage screen."""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional

from api.models.schemas import TriageDocument

VIEWS = ("all", "pending", "triaged", "flagged")
FLAGGED_PRIVILEGE = 0.7
UNSCORED = -1.0

SORT_FIELDS: Dict[str, Callable[[TriageDocument], Any]] = {
    "uploaded_at": lambda doc: doc.uploaded_at,
    "relevance_score": lambda doc: UNSCORED if doc.relevance_score is None else doc.relevance_score,
    "privilege_score": lambda doc: UNSCORED if doc.privilege_score is None else doc.privilege_score,
    "filename": lambda doc: doc.filename.lower(),
}

_VIEW_PREDICATES: Dict[str, Callable[[TriageDocument], bool]] = {
    "all": lambda doc: True,
    "pending": lambda doc: doc.triage_status in (None, "pending"),
    "triaged": lambda doc: doc.triage_status == "completed",
    "flagged": lambda doc: doc.privilege_score is not None and doc.privilege_score >= FLAGGED_PRIVILEGE,
}


def triage_queue(
    documents: Iterable[TriageDocument],
    case_id: str,
    view: str = "all",
    sort_field: str = "uploaded_at",
    sort_order: str = "desc",
) -> List[TriageDocument]:
    if view not in _VIEW_PREDICATES:
        raise ValueError(f"view must be one of {', '.join(VIEWS)}, got {view!r}")
    if sort_field not in SORT_FIELDS:
        raise ValueError(f"sort_field must be one of {', '.join(SORT_FIELDS)}, got {sort_field!r}")
    if sort_order not in ("asc", "desc"):
        raise ValueError(f"sort_order must be 'asc' or 'desc', got {sort_order!r}")
    keep = _VIEW_PREDICATES[view]
    selected = [doc for doc in documents if doc.case_id == case_id and keep(doc)]
    return sorted(selected, key=SORT_FIELDS[sort_field], reverse=sort_order == "desc")


def relevance_band(score: Optional[float]) -> str:
    if score is None:
        return "unscored"
    if score >= 0.8:
        return "high"
    if score >= 0.5:
        return "medium"
    return "low"


def privilege_band(score: Optional[float]) -> str:
    if score is None:
        return "unscored"
    if score >= FLAGGED_PRIVILEGE:
        return "privileged"
    if score >= 0.4:
        return "review"
    return "clear"
