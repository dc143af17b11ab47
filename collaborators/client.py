"""Client for the remote litigation services with a stubbed fallback.

Conflict detection, document triage scoring and the geographic metrics are
computed elsewhere; this module only moves requests and results across the
boundary and turns transport problems into :class:`CollaboratorError`.
"""

from __future__ import annotations

import json
import logging
import threading
import urllib.error
import urllib.parse
import urllib.request
from functools import lru_cache
from typing import Any, Dict, List, Optional, Type, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ValidationError

from api.models.schemas import (
    AlignmentResult,
    CompactnessScores,
    CrosswalkEntry,
    DeadlineConflict,
    JobHandle,
    RemoteJobStatus,
)
from core.settings import Settings, get_settings

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class CollaboratorError(RuntimeError):
    """A remote service call failed or returned something unusable."""


class CollaboratorClient:
    """Thin wrapper around the litigation services HTTP API."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self._mode = self.settings.resolved_service_mode
        self._http_opener = urllib.request.build_opener()
        self._stub_jobs: Dict[str, Dict[str, Any]] = {}
        self._stub_lock = threading.Lock()

    @property
    def mode(self) -> str:
        return self._mode

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def check_conflicts(self, case_id: str) -> List[DeadlineConflict]:
        if self._mode == "stub":
            return []
        data = self._request("POST", "/deadlines/conflicts", {"case_id": case_id})
        return [_parse(DeadlineConflict, item, "conflict check") for item in data.get("conflicts") or []]

    def submit_triage_job(
        self,
        case_id: str,
        document_ids: List[str],
        relevance_threshold: float,
        privilege_threshold: float,
    ) -> JobHandle:
        payload = {
            "case_id": case_id,
            "document_ids": list(document_ids),
            "triage_settings": {
                "relevance_threshold": relevance_threshold,
                "privilege_threshold": privilege_threshold,
            },
        }
        if self._mode == "stub":
            return self._submit_stub(payload)
        data = self._request("POST", "/documents/triage", payload)
        return _parse(JobHandle, data, "triage submission")

    def get_job_status(self, remote_job_id: str) -> RemoteJobStatus:
        if self._mode == "stub":
            return self._status_stub(remote_job_id)
        data = self._request("GET", f"/jobs/{urllib.parse.quote(remote_job_id, safe='')}")
        return _parse(RemoteJobStatus, data, "job status")

    def calculate_compactness(self, geometry: Dict[str, Any], metrics: List[str]) -> CompactnessScores:
        if self._mode == "stub":
            return CompactnessScores(
                polsby_popper=0.42 if "polsby_popper" in metrics else None,
                reock=0.38 if "reock" in metrics else None,
                convex_hull_ratio=0.77 if "convex_hull_ratio" in metrics else None,
                metadata={"source": "stub"},
            )
        data = self._request("POST", "/geographic/compactness", {"geometry": geometry, "metrics": metrics})
        return _parse(CompactnessScores, data, "compactness")

    def align_spatial(
        self,
        source: Dict[str, Any],
        target: Dict[str, Any],
        resolution: int,
        id_properties: Dict[str, str],
    ) -> AlignmentResult:
        if self._mode == "stub":
            return self._align_stub(source, target, id_properties)
        data = self._request(
            "POST",
            "/geographic/align",
            {"source": source, "target": target, "resolution": resolution, "id_properties": id_properties},
        )
        return _parse(AlignmentResult, data, "spatial alignment")

    # ------------------------------------------------------------------
    # HTTP mode
    # ------------------------------------------------------------------
    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.settings.litigation_base_url.rstrip('/')}{path}"
        headers = {"Content-Type": "application/json"}
        if self.settings.litigation_api_key:
            headers["Authorization"] = f"Bearer {self.settings.litigation_api_key}"
        request = urllib.request.Request(
            url,
            data=json.dumps(payload).encode("utf-8") if payload is not None else None,
            headers=headers,
            method=method,
        )
        try:
            with self._http_opener.open(request, timeout=self.settings.http_timeout) as response:
                raw = response.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            message = exc.read().decode("utf-8", errors="ignore") if exc.fp else exc.reason
            logger.warning("%s %s failed with HTTP %s", method, path, exc.code)
            raise CollaboratorError(f"{method} {path} returned {exc.code}: {message}") from exc
        except (urllib.error.URLError, TimeoutError, OSError) as exc:
            logger.warning("%s %s unreachable: %s", method, path, exc)
            raise CollaboratorError(f"{method} {path} unreachable: {exc}") from exc
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CollaboratorError(f"{method} {path} returned invalid JSON") from exc
        # The services wrap payloads as {"success": ..., "data": ...}.
        if isinstance(data, dict) and "data" in data and "success" in data:
            if not data["success"]:
                error = data.get("error") or {}
                raise CollaboratorError(error.get("message") or f"{method} {path} reported failure")
            data = data["data"]
        if not isinstance(data, dict):
            raise CollaboratorError(f"{method} {path} returned an unexpected payload")
        return data

    # ------------------------------------------------------------------
    # Stub mode
    # ------------------------------------------------------------------
    def _submit_stub(self, payload: Dict[str, Any]) -> JobHandle:
        """Register a fake job that finishes after two status reads."""

        job_id = f"stub-{uuid4().hex}"
        with self._stub_lock:
            self._stub_jobs[job_id] = {"payload": payload, "reads": 0}
        return JobHandle(job_id=job_id)

    def _status_stub(self, remote_job_id: str) -> RemoteJobStatus:
        with self._stub_lock:
            job = self._stub_jobs.get(remote_job_id)
            if job is None:
                raise CollaboratorError(f"Unknown job {remote_job_id}")
            job["reads"] += 1
            if job["reads"] < 2:
                return RemoteJobStatus(status="running", progress=50, current_step="Scoring documents")
            # Finished stub jobs are forgotten once reported.
            del self._stub_jobs[remote_job_id]
        document_ids = job["payload"]["document_ids"]
        return RemoteJobStatus(
            status="completed",
            progress=100,
            current_step="Complete",
            result={"documents_processed": len(document_ids), "flagged": []},
        )

    def _align_stub(
        self, source: Dict[str, Any], target: Dict[str, Any], id_properties: Dict[str, str]
    ) -> AlignmentResult:
        source_key = id_properties.get("source", "id")
        target_key = id_properties.get("target", "id")
        source_ids = [str(f.get("properties", {}).get(source_key, "")) for f in source.get("features", [])]
        target_ids = [str(f.get("properties", {}).get(target_key, "")) for f in target.get("features", [])]
        crosswalk = [
            CrosswalkEntry(source_id=s, target_id=t, weight=1.0 / len(target_ids))
            for s in source_ids
            for t in target_ids
        ]
        return AlignmentResult(crosswalk=crosswalk, quality_metrics={"source": "stub", "pairs": len(crosswalk)})


def _parse(model: Type[M], data: Any, what: str) -> M:
    """Validate a remote payload; a malformed one is a collaborator failure."""

    try:
        return model.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(part) for part in error["loc"]) or "payload" for error in exc.errors())
        logger.warning("Malformed %s response: invalid %s", what, fields)
        raise CollaboratorError(f"Malformed {what} response from remote service (invalid {fields})") from exc


@lru_cache(maxsize=1)
def get_client() -> CollaboratorClient:
    """Return the shared client so stub-mode jobs are visible to every caller."""

    return CollaboratorClient()


__all__ = ["CollaboratorClient", "CollaboratorError", "get_client"]
