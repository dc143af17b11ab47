"""Single-flight admission and progress tracking for asynchronous jobs.

At most one job per ``(case_id, job_type)`` may be running. A second
submission for the same key is refused outright rather than queued; once the
running job reaches ``completed`` or ``failed`` the key is free again. Terminal
jobs stay readable until the caller acknowledges them.

There is no cancel transition: a running job ends only by completing or
failing, and callers wait for that before resubmitting.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from api.models.schemas import Job, JobStatus, JobType, RemoteJobStatus
from collaborators import CollaboratorClient, CollaboratorError, get_client
from core.clock import utcnow
from core.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class JobRejected(ValueError):
    """Submission refused because a job for the same key is still running."""

    def __init__(self, case_id: str, job_type: JobType, running_job_id: str) -> None:
        self.case_id = case_id
        self.job_type = job_type
        self.running_job_id = running_job_id
        super().__init__(
            f"A {job_type.value} job ({running_job_id}) is already running for case {case_id}; "
            "wait for it to finish before submitting again."
        )


class InvalidJobTransition(ValueError):
    """Attempt to move a job out of a terminal state or drop a running job."""


class JobAdmissionController:
    """In-memory job table guarded by a lock."""

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()
        self._clock = clock

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------
    def submit(self, case_id: str, job_type: JobType, payload: Optional[Dict[str, Any]] = None) -> Job:
        with self._lock:
            running = self._running_for(case_id, job_type)
            if running is not None:
                logger.info("Rejected %s for case %s: job %s still running", job_type.value, case_id, running.job_id)
                raise JobRejected(case_id, job_type, running.job_id)
            now = self._clock()
            job = Job(
                job_id=uuid4().hex,
                case_id=case_id,
                job_type=job_type,
                status=JobStatus.RUNNING,
                progress=0,
                payload=dict(payload or {}),
                created_at=now,
                updated_at=now,
            )
            self._jobs[job.job_id] = job
        logger.info("Accepted %s job %s for case %s", job_type.value, job.job_id, case_id)
        return job

    def is_running(self, case_id: str, job_type: JobType) -> bool:
        with self._lock:
            return self._running_for(case_id, job_type) is not None

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------
    def attach_remote(self, job_id: str, remote_job_id: str) -> Job:
        return self._update(job_id, remote_job_id=remote_job_id)

    def record_progress(
        self,
        job_id: str,
        progress: int,
        current_step: Optional[str] = None,
        message: Optional[str] = None,
    ) -> Job:
        """Merge a progress report; reports arriving after the job ended are ignored."""

        with self._lock:
            job = self._jobs[job_id]
            if job.is_terminal:
                return job
            changes: Dict[str, Any] = {"progress": max(0, min(100, int(progress))), "updated_at": self._clock()}
            if current_step is not None:
                changes["current_step"] = current_step
            if message is not None:
                changes["message"] = message
            job = job.model_copy(update=changes)
            self._jobs[job_id] = job
            return job

    def complete(self, job_id: str, result: Optional[Dict[str, Any]] = None) -> Job:
        job = self._finish(job_id, JobStatus.COMPLETED, progress=100, result=result, current_step="Complete")
        logger.info("Job %s completed", job_id)
        return job

    def fail(self, job_id: str, error_message: str) -> Job:
        job = self._finish(job_id, JobStatus.FAILED, error_message=error_message, current_step="Failed")
        logger.warning("Job %s failed: %s", job_id, error_message)
        return job

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, job_id: str) -> Job:
        with self._lock:
            return self._jobs[job_id]

    def list(
        self,
        case_id: Optional[str] = None,
        job_type: Optional[JobType] = None,
        status: Optional[JobStatus] = None,
    ) -> List[Job]:
        with self._lock:
            jobs = list(self._jobs.values())
        return [
            job
            for job in jobs
            if (case_id is None or job.case_id == case_id)
            and (job_type is None or job.job_type == job_type)
            and (status is None or job.status == status)
        ]

    def acknowledge(self, job_id: str) -> Job:
        """Drop a finished job once the caller has seen its outcome."""

        with self._lock:
            job = self._jobs[job_id]
            if not job.is_terminal:
                raise InvalidJobTransition(f"Job {job_id} is still running and cannot be acknowledged")
            del self._jobs[job_id]
            return job

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _running_for(self, case_id: str, job_type: JobType) -> Optional[Job]:
        for job in self._jobs.values():
            if job.case_id == case_id and job.job_type == job_type and job.status == JobStatus.RUNNING:
                return job
        return None

    def _update(self, job_id: str, **changes: Any) -> Job:
        with self._lock:
            job = self._jobs[job_id].model_copy(update={**changes, "updated_at": self._clock()})
            self._jobs[job_id] = job
            return job

    def _finish(self, job_id: str, status: JobStatus, **changes: Any) -> Job:
        with self._lock:
            job = self._jobs[job_id]
            if job.is_terminal:
                raise InvalidJobTransition(f"Job {job_id} already {job.status.value}")
            now = self._clock()
            job = job.model_copy(update={**changes, "status": status, "updated_at": now, "completed_at": now})
            self._jobs[job_id] = job
            return job


class TriageJobService:
    """Admit a document triage request, then hand it to the remote scorer."""

    def __init__(
        self,
        controller: JobAdmissionController,
        client: CollaboratorClient,
        settings: Optional[Settings] = None,
    ) -> None:
        self.controller = controller
        self.client = client
        self.settings = settings or get_settings()

    def submit(
        self,
        case_id: str,
        document_ids: List[str],
        relevance_threshold: Optional[float] = None,
        privilege_threshold: Optional[float] = None,
    ) -> Job:
        if not document_ids:
            raise ValueError("Select at least one document to triage")
        relevance = self.settings.triage_relevance_threshold if relevance_threshold is None else relevance_threshold
        privilege = self.settings.triage_privilege_threshold if privilege_threshold is None else privilege_threshold
        for name, value in (("relevance_threshold", relevance), ("privilege_threshold", privilege)):
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0 and 1, got {value}")
        job = self.controller.submit(
            case_id,
            JobType.DOCUMENT_TRIAGE,
            {
                "document_ids": list(document_ids),
                "relevance_threshold": relevance,
                "privilege_threshold": privilege,
            },
        )
        try:
            handle = self.client.submit_triage_job(case_id, document_ids, relevance, privilege)
        except CollaboratorError as exc:
            return self.controller.fail(
                job.job_id, f"Triage could not be started: {exc}. Submit a new triage request to try again."
            )
        return self.controller.attach_remote(job.job_id, handle.job_id)


class JobPoller:
    """Follow a remote job until it reaches a terminal state or times out."""

    def __init__(
        self,
        controller: JobAdmissionController,
        client: CollaboratorClient,
        interval: Optional[float] = None,
        timeout: Optional[float] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        settings = get_settings()
        self.controller = controller
        self.client = client
        self.interval = settings.job_poll_interval if interval is None else interval
        self.timeout = settings.job_poll_timeout if timeout is None else timeout
        self._monotonic = monotonic

    async def run(self, job_id: str) -> Job:
        started = self._monotonic()
        while True:
            job = self.controller.get(job_id)
            if job.is_terminal:
                return job
            if not job.remote_job_id:
                return self.controller.fail(job_id, "Job has no remote handle to poll")
            try:
                remote = await asyncio.to_thread(self.client.get_job_status, job.remote_job_id)
            except CollaboratorError as exc:
                return self.controller.fail(job_id, f"Lost track of job: {exc}")
            finished = self._merge(job_id, remote)
            if finished is not None:
                return finished
            if self._monotonic() - started > self.timeout:
                return self.controller.fail(job_id, f"Job polling timed out after {self.timeout:g} seconds")
            await asyncio.sleep(self.interval)

    def _merge(self, job_id: str, remote: RemoteJobStatus) -> Optional[Job]:
        if remote.status == "completed":
            return self.controller.complete(job_id, remote.result)
        if remote.status in ("failed", "cancelled"):
            reason = remote.error_message or f"Job {remote.status} by the remote service"
            return self.controller.fail(job_id, reason)
        self.controller.record_progress(job_id, remote.progress, remote.current_step, remote.message)
        return None


job_controller = JobAdmissionController()
triage_service = TriageJobService(job_controller, get_client())
job_poller = JobPoller(job_controller, get_client())


__all__ = [
    "InvalidJobTransition",
    "JobAdmissionController",
    "JobPoller",
    "JobRejected",
    "TriageJobService",
    "job_controller",
    "job_poller",
    "triage_service",
]
