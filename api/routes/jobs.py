"""HTTP routes for document triage and the job table."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query

from api.models.schemas import (
    Job,
    JobListResponse,
    JobStatus,
    JobType,
    TriageQueueEntry,
    TriageQueuePage,
    TriageQueueRequest,
    TriageRequest,
)
from api.services.jobs import InvalidJobTransition, JobRejected, job_controller, job_poller, triage_service
from scheduler.filters import paginate
from scheduler.triage_queue import privilege_band, relevance_band, triage_queue

router = APIRouter(prefix="/api", tags=["jobs"])


@router.post("/cases/{case_id}/triage", response_model=Job, status_code=202)
def start_triage(case_id: str, request: TriageRequest, background_tasks: BackgroundTasks) -> Job:
    """Submit documents for triage and follow the remote job in the background.

    Refused with 409 while an earlier triage job for the same case is running.
    """

    try:
        job = triage_service.submit(
            case_id,
            request.document_ids,
            relevance_threshold=request.relevance_threshold,
            privilege_threshold=request.privilege_threshold,
        )
    except JobRejected as exc:
        raise HTTPException(
            status_code=409,
            detail={"message": str(exc), "running_job_id": exc.running_job_id},
        ) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if not job.is_terminal:
        background_tasks.add_task(job_poller.run, job.job_id)
    return job


@router.post("/cases/{case_id}/documents/queue", response_model=TriageQueuePage)
def document_queue(
    case_id: str,
    request: TriageQueueRequest,
    view: str = "all",
    sort_field: str = "uploaded_at",
    sort_order: str = "desc",
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> TriageQueuePage:
    """Arrange a case's documents for the triage screen."""

    try:
        ordered = triage_queue(request.documents, case_id, view, sort_field, sort_order)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    window = paginate(ordered, page=page, limit=limit)
    return TriageQueuePage(
        view=view,
        results=[
            TriageQueueEntry(
                document=document,
                relevance_band=relevance_band(document.relevance_score),
                privilege_band=privilege_band(document.privilege_score),
            )
            for document in window.items
        ],
        total=window.total,
        page=window.page,
        limit=window.limit,
        total_pages=window.total_pages,
    )


@router.get("/jobs", response_model=JobListResponse)
def list_jobs(
    case_id: Optional[str] = None,
    job_type: Optional[JobType] = None,
    status: Optional[JobStatus] = None,
) -> JobListResponse:
    return JobListResponse(jobs=job_controller.list(case_id=case_id, job_type=job_type, status=status))


@router.get("/jobs/{job_id}", response_model=Job)
def get_job(job_id: str) -> Job:
    """Current state of a job; safe to poll repeatedly."""

    try:
        return job_controller.get(job_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found") from exc


@router.delete("/jobs/{job_id}", response_model=Job)
def acknowledge_job(job_id: str) -> Job:
    """Remove a finished job once its outcome has been seen."""

    try:
        return job_controller.acknowledge(job_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found") from exc
    except InvalidJobTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
