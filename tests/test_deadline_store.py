from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Tuple

from api.models.schemas import DeadlineConflict, DeadlineCreateRequest, DeadlineUpdateRequest
from api.services.deadline_store import DeadlineStore
from collaborators import CollaboratorError
from core.settings import Settings

NOW = datetime(2025, 3, 10, tzinfo=timezone.utc)
DUE = datetime(2025, 3, 20, 17, tzinfo=timezone.utc)


class StoreReadingChecker:
    """Reads the store back from inside the check, as the remote service would."""

    def __init__(self, error: Optional[Exception] = None) -> None:
        self.store: Optional[DeadlineStore] = None
        self.error = error
        self.seen: List[Tuple[str, List[str]]] = []

    def check_conflicts(self, case_id: str) -> List[DeadlineConflict]:
        titles = sorted(d.title for d in self.store.snapshot() if d.case_id == case_id)
        self.seen.append((case_id, titles))
        if self.error is not None:
            raise self.error
        return []


def _store(checker: StoreReadingChecker) -> DeadlineStore:
    store = DeadlineStore(checker=checker, settings=Settings())
    checker.store = store
    return store


def test_conflict_check_sees_the_committed_create() -> None:
    checker = StoreReadingChecker()
    store = _store(checker)

    result = store.create(DeadlineCreateRequest(case_id="case-1", title="Answer due", deadline_date=DUE), NOW)

    assert checker.seen == [("case-1", ["Answer due"])]
    assert store.get(result.deadline.id).title == "Answer due"
    assert result.conflicts.status == "clear"


def test_conflict_check_sees_the_committed_update() -> None:
    checker = StoreReadingChecker()
    store = _store(checker)
    created = store.create(DeadlineCreateRequest(case_id="case-1", title="Answer due", deadline_date=DUE), NOW)

    store.update(created.deadline.id, DeadlineUpdateRequest(title="Amended answer due"), NOW)

    assert checker.seen[-1] == ("case-1", ["Amended answer due"])


def test_failed_conflict_check_reports_unknown() -> None:
    checker = StoreReadingChecker(error=CollaboratorError("conflict service unreachable"))
    store = _store(checker)

    created = store.create(DeadlineCreateRequest(case_id="case-1", title="Answer due", deadline_date=DUE), NOW)
    assert created.conflicts.status == "unknown"
    assert "unreachable" in created.conflicts.error
    # The deadline is saved even though the check failed.
    assert store.get(created.deadline.id).title == "Answer due"

    updated = store.update(created.deadline.id, DeadlineUpdateRequest(notes="Call opposing counsel"), NOW)
    response = updated.to_response()
    assert response.conflicts.status == "unknown"
    assert response.deadline.notes == "Call opposing counsel"
    assert store.conflicts.latest("case-1").status == "unknown"
