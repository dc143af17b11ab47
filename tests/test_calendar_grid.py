from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from api.models.schemas import Deadline, DeadlinePriority
from scheduler.calendar_grid import (
    GRID_CELLS,
    build_month_grid,
    days_in_month,
    deadlines_on,
    first_weekday_index,
    month_label,
    shift_month,
)
from scheduler.priority import resolve_priority


def _deadline(deadline_id: str, when: datetime, priority: DeadlinePriority = DeadlinePriority.NORMAL) -> Deadline:
    return Deadline(id=deadline_id, case_id="case-1", title=f"Deadline {deadline_id}", deadline_date=when, priority=priority)


@pytest.mark.parametrize("year,month", [(2025, 3), (2024, 12), (2025, 1), (2024, 2), (2026, 8)])
def test_grid_shape(year: int, month: int) -> None:
    grid = build_month_grid(year, month, [], today=date(2025, 3, 10))

    assert len(grid) == GRID_CELLS
    assert grid[0].date.weekday() == 6  # Sunday
    leading = first_weekday_index(year, month)
    assert grid[leading].date == date(year, month, 1)
    assert sum(1 for cell in grid if cell.is_current_month) == days_in_month(year, month)
    assert all(later.date - earlier.date == timedelta(days=1) for earlier, later in zip(grid, grid[1:]))


def test_march_2025_layout() -> None:
    grid = build_month_grid(2025, 3, [], today=date(2025, 3, 10))

    assert grid[0].date == date(2025, 2, 23)
    assert grid[6].date == date(2025, 3, 1)
    assert grid[36].date == date(2025, 3, 31)
    assert grid[37].date == date(2025, 4, 1)
    assert [cell.date for cell in grid if cell.is_today] == [date(2025, 3, 10)]


def test_year_rollover_both_directions() -> None:
    january = build_month_grid(2025, 1, [], today=date(2025, 1, 1))
    assert january[0].date == date(2024, 12, 29)
    assert not january[0].is_current_month

    december = build_month_grid(2024, 12, [], today=date(2025, 1, 1))
    assert december[-1].date.year == 2025
    assert december[-1].date.month == 1


def test_bucketing_and_priority() -> None:
    deadlines = [
        _deadline("low", datetime(2025, 3, 15, 9, tzinfo=timezone.utc), DeadlinePriority.LOW),
        _deadline("critical", datetime(2025, 3, 15, 13, tzinfo=timezone.utc), DeadlinePriority.CRITICAL),
        _deadline("high", datetime(2025, 3, 15, 17, tzinfo=timezone.utc), DeadlinePriority.HIGH),
        _deadline("other", datetime(2025, 3, 20, tzinfo=timezone.utc)),
    ]
    grid = build_month_grid(2025, 3, deadlines, today=date(2025, 3, 10))
    cell = next(cell for cell in grid if cell.date == date(2025, 3, 15))

    assert [deadline.id for deadline in cell.deadlines] == ["low", "critical", "high"]
    assert resolve_priority(cell.deadlines) == DeadlinePriority.CRITICAL


def test_indexed_grid_matches_per_cell_scan() -> None:
    start = datetime(2025, 2, 20, 6, tzinfo=timezone.utc)
    deadlines = [_deadline(str(n), start + timedelta(hours=17 * n)) for n in range(60)]
    grid = build_month_grid(2025, 3, deadlines, today=date(2025, 3, 10))

    for cell in grid:
        assert list(cell.deadlines) == deadlines_on(cell.date, deadlines)


def test_bucketing_uses_display_timezone() -> None:
    late_evening_new_york = datetime(2025, 3, 15, 2, tzinfo=timezone.utc)
    eastern = timezone(timedelta(hours=-5))
    deadlines = [_deadline("late", late_evening_new_york)]

    utc_grid = build_month_grid(2025, 3, deadlines, today=date(2025, 3, 10))
    eastern_grid = build_month_grid(2025, 3, deadlines, today=date(2025, 3, 10), tz=eastern)

    assert [cell.date for cell in utc_grid if cell.deadlines] == [date(2025, 3, 15)]
    assert [cell.date for cell in eastern_grid if cell.deadlines] == [date(2025, 3, 14)]


def test_naive_deadline_dates_are_utc() -> None:
    deadline = _deadline("naive", datetime(2025, 3, 15, 23, 30))
    assert deadline.deadline_date.tzinfo == timezone.utc
    assert deadlines_on(date(2025, 3, 15), [deadline]) == [deadline]


def test_month_navigation() -> None:
    assert shift_month(2025, 1, -1) == (2024, 12)
    assert shift_month(2024, 12, 1) == (2025, 1)
    assert shift_month(2025, 3, 14) == (2026, 5)
    assert month_label(2025, 3) == "March 2025"


def test_invalid_month_rejected() -> None:
    with pytest.raises(ValueError):
        build_month_grid(2025, 13, [], today=date(2025, 3, 10))
    with pytest.raises(ValueError):
        shift_month(2025, 0, 1)
