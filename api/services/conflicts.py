"""Forward committed deadline changes to the remote conflict checker."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, FrozenSet, List, Optional, Protocol

from api.models.schemas import ConflictReportResponse, DeadlineConflict
from core.clock import utcnow

logger = logging.getLogger(__name__)

ConflictPair = FrozenSet[str]


class ConflictChecker(Protocol):
    def check_conflicts(self, case_id: str) -> List[DeadlineConflict]: ...


@dataclass(frozen=True)
class ConflictReport:
    """Outcome of one conflict check.

    ``status`` is ``clear`` when the checker found nothing, ``conflicts`` when
    it found collisions, and ``unknown`` when the check itself failed.
    """

    case_id: str
    status: str
    checked_at: datetime
    conflicts: Dict[ConflictPair, DeadlineConflict] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def pairs(self) -> List[ConflictPair]:
        return list(self.conflicts)

    def to_response(self) -> ConflictReportResponse:
        unique: List[DeadlineConflict] = []
        for conflict in self.conflicts.values():
            if conflict not in unique:
                unique.append(conflict)
        return ConflictReportResponse(
            case_id=self.case_id,
            status=self.status,
            conflicts=unique,
            pairs=sorted(sorted(pair) for pair in self.conflicts),
            error=self.error,
            checked_at=self.checked_at,
        )


def conflict_pairs(conflicts: List[DeadlineConflict]) -> Dict[ConflictPair, DeadlineConflict]:
    """Key each reported collision by its unordered pair of deadline ids."""

    keyed: Dict[ConflictPair, DeadlineConflict] = {}
    for conflict in conflicts:
        others = [other for other in conflict.conflicts_with if other != conflict.deadline_id]
        if not others:
            # Reported without a partner; keep it visible under its own id.
            keyed.setdefault(frozenset((conflict.deadline_id,)), conflict)
        for other in others:
            keyed.setdefault(frozenset((conflict.deadline_id, other)), conflict)
    return keyed


class ConflictResultRouter:
    def __init__(self, checker: ConflictChecker, clock: Callable[[], datetime] = utcnow) -> None:
        self.checker = checker
        self._clock = clock
        self._latest: Dict[str, ConflictReport] = {}
        self._lock = threading.Lock()

    def after_mutation(self, case_id: Optional[str]) -> Optional[ConflictReport]:
        """Run the remote check for a case whose deadlines were just saved."""

        if not case_id:
            return None
        try:
            conflicts = self.checker.check_conflicts(case_id)
        except Exception as exc:
            logger.warning("Conflict check for case %s failed: %s", case_id, exc)
            report = ConflictReport(case_id=case_id, status="unknown", checked_at=self._clock(), error=str(exc))
        else:
            keyed = conflict_pairs(conflicts)
            report = ConflictReport(
                case_id=case_id,
                status="conflicts" if keyed else "clear",
                checked_at=self._clock(),
                conflicts=keyed,
            )
            if keyed:
                logger.info("Case %s has %d conflicting deadline pair(s)", case_id, len(keyed))
        with self._lock:
            self._latest[case_id] = report
        return report

    def latest(self, case_id: str) -> Optional[ConflictReport]:
        with self._lock:
            return self._latest.get(case_id)


__all__ = ["ConflictChecker", "ConflictReport", "ConflictResultRouter", "conflict_pairs"]
