from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from itertools import count
from typing import List, Optional

import pytest

from api.models.schemas import JobHandle, JobStatus, JobType, RemoteJobStatus
from api.services.jobs import (
    InvalidJobTransition,
    JobAdmissionController,
    JobPoller,
    JobRejected,
    TriageJobService,
)
from collaborators import CollaboratorClient, CollaboratorError
from core.settings import Settings

NOW = datetime(2025, 3, 10, tzinfo=timezone.utc)


class FakeTriageClient:
    def __init__(
        self, statuses: Optional[List[RemoteJobStatus]] = None, submit_error: Optional[Exception] = None
    ) -> None:
        self.statuses = list(statuses or [])
        self.submit_error = submit_error
        self.submitted: List[dict] = []

    def submit_triage_job(self, case_id, document_ids, relevance_threshold, privilege_threshold) -> JobHandle:
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append(
            {
                "case_id": case_id,
                "document_ids": document_ids,
                "relevance_threshold": relevance_threshold,
                "privilege_threshold": privilege_threshold,
            }
        )
        return JobHandle(job_id="remote-1")

    def get_job_status(self, remote_job_id: str) -> RemoteJobStatus:
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0]


def _controller() -> JobAdmissionController:
    return JobAdmissionController(clock=lambda: NOW)


def test_single_flight_accept_reject_complete_accept() -> None:
    controller = _controller()

    first = controller.submit("case-1", JobType.DOCUMENT_TRIAGE)
    assert first.status == JobStatus.RUNNING
    assert first.progress == 0

    with pytest.raises(JobRejected) as excinfo:
        controller.submit("case-1", JobType.DOCUMENT_TRIAGE)
    assert excinfo.value.running_job_id == first.job_id
    assert len(controller.list()) == 1

    controller.complete(first.job_id, {"documents_processed": 3})
    second = controller.submit("case-1", JobType.DOCUMENT_TRIAGE)
    assert second.job_id != first.job_id


def test_other_keys_are_independent() -> None:
    controller = _controller()
    controller.submit("case-1", JobType.DOCUMENT_TRIAGE)

    controller.submit("case-2", JobType.DOCUMENT_TRIAGE)
    controller.submit("case-1", JobType.PRECEDENT_SEARCH)

    assert controller.is_running("case-1", JobType.DOCUMENT_TRIAGE)
    assert len(controller.list(case_id="case-1")) == 2


def test_failed_job_frees_the_key() -> None:
    controller = _controller()
    job = controller.submit("case-1", JobType.DOCUMENT_TRIAGE)
    controller.fail(job.job_id, "scorer crashed")

    assert controller.get(job.job_id).error_message == "scorer crashed"
    assert not controller.is_running("case-1", JobType.DOCUMENT_TRIAGE)
    controller.submit("case-1", JobType.DOCUMENT_TRIAGE)


def test_terminal_transitions_are_one_way() -> None:
    controller = _controller()
    job = controller.submit("case-1", JobType.DOCUMENT_TRIAGE)
    controller.complete(job.job_id)

    with pytest.raises(InvalidJobTransition):
        controller.fail(job.job_id, "too late")
    with pytest.raises(InvalidJobTransition):
        controller.complete(job.job_id)
    assert controller.get(job.job_id).status == JobStatus.COMPLETED


def test_progress_is_clamped_and_ignored_after_completion() -> None:
    controller = _controller()
    job = controller.submit("case-1", JobType.DOCUMENT_TRIAGE)

    assert controller.record_progress(job.job_id, 140, current_step="Scoring").progress == 100
    assert controller.record_progress(job.job_id, -5).progress == 0

    controller.complete(job.job_id)
    assert controller.record_progress(job.job_id, 10).progress == 100


def test_acknowledge_only_terminal_jobs() -> None:
    controller = _controller()
    job = controller.submit("case-1", JobType.DOCUMENT_TRIAGE)

    with pytest.raises(InvalidJobTransition):
        controller.acknowledge(job.job_id)

    controller.complete(job.job_id)
    assert controller.get(job.job_id) == controller.get(job.job_id)
    controller.acknowledge(job.job_id)
    with pytest.raises(KeyError):
        controller.get(job.job_id)


def test_triage_service_uses_default_thresholds() -> None:
    client = FakeTriageClient()
    job = TriageJobService(_controller(), client).submit("case-1", ["doc-1", "doc-2"])

    assert job.remote_job_id == "remote-1"
    assert client.submitted[0]["relevance_threshold"] == 0.5
    assert client.submitted[0]["privilege_threshold"] == 0.7


def test_triage_service_validates_input() -> None:
    service = TriageJobService(_controller(), FakeTriageClient())

    with pytest.raises(ValueError, match="at least one"):
        service.submit("case-1", [])
    with pytest.raises(ValueError, match="relevance_threshold"):
        service.submit("case-1", ["doc-1"], relevance_threshold=1.5)
    assert service.controller.list() == []


def test_triage_submission_failure_fails_the_job() -> None:
    controller = _controller()
    service = TriageJobService(controller, FakeTriageClient(submit_error=CollaboratorError("connection refused")))

    job = service.submit("case-1", ["doc-1"])

    assert job.status == JobStatus.FAILED
    assert "Submit a new triage request" in job.error_message
    assert not controller.is_running("case-1", JobType.DOCUMENT_TRIAGE)


def test_poller_follows_job_to_completion() -> None:
    controller = _controller()
    client = FakeTriageClient(
        [
            RemoteJobStatus(status="queued"),
            RemoteJobStatus(status="running", progress=60, current_step="Scoring documents"),
            RemoteJobStatus(status="completed", progress=100, result={"documents_processed": 2}),
        ]
    )
    job = TriageJobService(controller, client).submit("case-1", ["doc-1", "doc-2"])

    finished = asyncio.run(JobPoller(controller, client, interval=0).run(job.job_id))

    assert finished.status == JobStatus.COMPLETED
    assert finished.progress == 100
    assert finished.result == {"documents_processed": 2}
    assert finished.completed_at == NOW


def test_poller_maps_remote_cancellation_to_failure() -> None:
    controller = _controller()
    client = FakeTriageClient([RemoteJobStatus(status="cancelled")])
    job = TriageJobService(controller, client).submit("case-1", ["doc-1"])

    finished = asyncio.run(JobPoller(controller, client, interval=0).run(job.job_id))

    assert finished.status == JobStatus.FAILED
    assert "cancelled" in finished.error_message


def test_poller_times_out() -> None:
    controller = _controller()
    client = FakeTriageClient([RemoteJobStatus(status="running", progress=10)])
    job = TriageJobService(controller, client).submit("case-1", ["doc-1"])
    ticks = count(step=30)
    poller = JobPoller(controller, client, interval=0, timeout=60, monotonic=lambda: next(ticks))

    finished = asyncio.run(poller.run(job.job_id))

    assert finished.status == JobStatus.FAILED
    assert "timed out" in finished.error_message
    assert finished.progress == 10


def _scripted_client(*responses: dict) -> CollaboratorClient:
    settings = Settings()
    settings.service_mode = "http"
    client = CollaboratorClient(settings)
    replies = iter(responses)
    client._request = lambda method, path, payload=None: next(replies)
    return client


def test_malformed_submission_reply_fails_the_job() -> None:
    controller = _controller()
    service = TriageJobService(controller, _scripted_client({"jobId": "r1"}))

    job = service.submit("case-1", ["doc-1"])

    assert job.status == JobStatus.FAILED
    assert "Malformed triage submission" in job.error_message
    assert not controller.is_running("case-1", JobType.DOCUMENT_TRIAGE)
    controller.submit("case-1", JobType.DOCUMENT_TRIAGE)


def test_malformed_status_reply_fails_the_job() -> None:
    controller = _controller()
    client = _scripted_client({"job_id": "r1"}, {"status": "running", "progress": None})
    job = TriageJobService(controller, client).submit("case-1", ["doc-1"])
    assert job.remote_job_id == "r1"

    finished = asyncio.run(JobPoller(controller, client, interval=0).run(job.job_id))

    assert finished.status == JobStatus.FAILED
    assert "Malformed job status" in finished.error_message
    assert "progress" in finished.error_message
    assert not controller.is_running("case-1", JobType.DOCUMENT_TRIAGE)
    controller.submit("case-1", JobType.DOCUMENT_TRIAGE)


def test_unknown_remote_status_fails_the_job() -> None:
    controller = _controller()
    client = _scripted_client({"job_id": "r1"}, {"status": "exploded"})
    job = TriageJobService(controller, client).submit("case-1", ["doc-1"])

    finished = asyncio.run(JobPoller(controller, client, interval=0).run(job.job_id))

    assert finished.status == JobStatus.FAILED
    assert "status" in finished.error_message
