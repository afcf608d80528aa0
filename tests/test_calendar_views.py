# tests/test_calendar_views.py

from __future__ import annotations

import calendar
from datetime import date

import pytest

from dispatch.views.calendar import (
    COLS,
    count_undated,
    group_tasks_by_date,
    month_grid,
    plan_reschedule,
    shift_month,
    tasks_in_month,
    with_due_date,
)

from .fakes import make_task


def test_group_orders_by_priority_then_title() -> None:
    a = make_task("A", due_date="2024-06-01", priority="low")
    b = make_task("B", due_date="2024-06-01", priority="high")
    grouped = group_tasks_by_date([a, b])
    assert [t.title for t in grouped["2024-06-01"]] == ["B", "A"]


def test_unknown_priority_sorts_last_and_titles_break_ties() -> None:
    tasks = [
        make_task("zeta", due_date="2024-06-03", priority="urgent"),
        make_task("beta", due_date="2024-06-03", priority="medium"),
        make_task("alpha", due_date="2024-06-03", priority="medium"),
        make_task("gamma", due_date="2024-06-03", priority="low"),
    ]
    once = group_tasks_by_date(tasks)["2024-06-03"]
    assert [t.title for t in once] == ["alpha", "beta", "gamma", "zeta"]
    # idempotent under re-application
    assert group_tasks_by_date(once)["2024-06-03"] == once


def test_undated_tasks_are_excluded_but_counted() -> None:
    tasks = [make_task("x"), make_task("y", due_date="2024-06-04"), make_task("z")]
    grouped = group_tasks_by_date(tasks)
    assert list(grouped) == ["2024-06-04"]
    assert count_undated(tasks) == 2


@pytest.mark.parametrize("year,month", [(2024, 6), (2024, 2), (2023, 2), (2024, 9), (2025, 3), (2026, 10)])
def test_month_grid_shape(year: int, month: int) -> None:
    grid = month_grid(year, month)
    assert len(grid) % COLS == 0

    cells = [c for c in grid if c is not None]
    days_in_month = calendar.monthrange(year, month)[1]
    weekdays = [d for d in range(1, days_in_month + 1) if date(year, month, d).weekday() < 5]
    assert [c.day for c in cells] == weekdays

    # every weekday sits in its own Mon-Fri column
    for idx, cell in enumerate(grid):
        if cell is not None:
            assert idx % COLS == date(year, month, cell.day).weekday()


def test_june_2024_layout() -> None:
    # June 1st 2024 is a Saturday, first weekday is Monday the 3rd
    grid = month_grid(2024, 6)
    assert grid[0].date_str == "2024-06-03"
    assert len(grid) == 20
    assert grid[-1].date_str == "2024-06-28"


def test_month_with_leading_blanks() -> None:
    # May 1st 2024 is a Wednesday
    grid = month_grid(2024, 5)
    assert grid[:2] == [None, None]
    assert grid[2].date_str == "2024-05-01"


def test_shift_month_wraps_years() -> None:
    assert shift_month(2024, 1, -1) == (2023, 12)
    assert shift_month(2024, 12, 1) == (2025, 1)
    assert shift_month(2024, 6, 0) == (2024, 6)


def test_tasks_in_month_counts_only_grid_dates() -> None:
    tasks = [
        make_task("in", due_date="2024-06-03"),
        make_task("weekend", due_date="2024-06-08"),
        make_task("other month", due_date="2024-07-01"),
    ]
    assert tasks_in_month(month_grid(2024, 6), group_tasks_by_date(tasks)) == 1


def test_drop_on_same_date_is_noop() -> None:
    task = make_task("x", due_date="2024-06-05")
    assert plan_reschedule([task], task.id, "2024-06-05") is None
    assert plan_reschedule([task], "missing", "2024-06-06") is None

    plan = plan_reschedule([task], task.id, date(2024, 6, 6))
    assert plan.previous == "2024-06-05"
    assert plan.target == "2024-06-06"

    moved = with_due_date([task], task.id, plan.target)
    assert moved[0].due_date == "2024-06-06"
    assert task.due_date == "2024-06-05"
