from __future__ import annotations

import pytest

from collaborators import CollaboratorClient, CollaboratorError
from core.settings import Settings


def _stub_client() -> CollaboratorClient:
    settings = Settings()
    settings.service_mode = "stub"
    return CollaboratorClient(settings)


def test_unknown_mode_falls_back_to_stub() -> None:
    settings = Settings()
    settings.service_mode = "carrier-pigeon"
    assert CollaboratorClient(settings).mode == "stub"


def test_stub_job_completes_on_second_read() -> None:
    client = _stub_client()
    handle = client.submit_triage_job("case-1", ["doc-1", "doc-2"], 0.5, 0.7)

    first = client.get_job_status(handle.job_id)
    second = client.get_job_status(handle.job_id)

    assert first.status == "running"
    assert second.status == "completed"
    assert second.result["documents_processed"] == 2
    # Finished jobs are forgotten after their completion is reported.
    with pytest.raises(CollaboratorError, match="Unknown job"):
        client.get_job_status(handle.job_id)
    assert client._stub_jobs == {}


def test_stub_job_ids_are_unique() -> None:
    client = _stub_client()
    ids = {client.submit_triage_job("case-1", ["doc-1"], 0.5, 0.7).job_id for _ in range(50)}
    assert len(ids) == 50


def test_stub_unknown_job_raises() -> None:
    with pytest.raises(CollaboratorError):
        _stub_client().get_job_status("missing")


def test_stub_conflicts_and_geographic() -> None:
    client = _stub_client()
    assert client.check_conflicts("case-1") == []

    scores = client.calculate_compactness({"type": "Polygon", "coordinates": []}, ["reock"])
    assert scores.reock == 0.38
    assert scores.polsby_popper is None

    source = {"features": [{"properties": {"geoid": "A"}}]}
    target = {"features": [{"properties": {"district": "1"}}, {"properties": {"district": "2"}}]}
    result = client.align_spatial(source, target, 8, {"source": "geoid", "target": "district"})
    assert [(e.source_id, e.target_id, e.weight) for e in result.crosswalk] == [("A", "1", 0.5), ("A", "2", 0.5)]


def test_http_mode_reports_unreachable_service() -> None:
    settings = Settings()
    settings.service_mode = "http"
    settings.litigation_base_url = "http://127.0.0.1:9"
    settings.http_timeout = 1.0

    with pytest.raises(CollaboratorError, match="unreachable"):
        CollaboratorClient(settings).check_conflicts("case-1")


def _http_client(reply: dict) -> CollaboratorClient:
    settings = Settings()
    settings.service_mode = "http"
    client = CollaboratorClient(settings)
    client._request = lambda method, path, payload=None: reply
    return client


def test_http_mode_rejects_malformed_payloads() -> None:
    with pytest.raises(CollaboratorError, match="Malformed compactness response"):
        _http_client({"polsby_popper": "not a number"}).calculate_compactness({}, ["polsby_popper"])
    with pytest.raises(CollaboratorError, match="Malformed spatial alignment response"):
        _http_client({"crosswalk": [{"source_id": "A"}]}).align_spatial({}, {}, 8, {})
    with pytest.raises(CollaboratorError, match="Malformed conflict check response"):
        _http_client({"conflicts": [{"severity": "apocalyptic"}]}).check_conflicts("case-1")


def test_http_mode_parses_well_formed_payloads() -> None:
    client = _http_client({"job_id": "remote-9"})
    assert client.submit_triage_job("case-1", ["doc-1"], 0.5, 0.7).job_id == "remote-9"
