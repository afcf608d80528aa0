"""
Calendar view derivations.

Tasks are bucketed by due date and laid out on a weekday-only month grid
(five columns, Monday to Friday). Everything here is pure: the same
collection always yields the same grid.
"""
import calendar as _calendar
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from dispatch.schemas import Task
from dispatch.views.common import day_str, priority_rank

COLS = 5


@dataclass(frozen=True)
class CalendarDay:
    year: int
    month: int
    day: int

    @property
    def date_str(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"


@dataclass(frozen=True)
class Reschedule:
    task_id: str
    previous: Optional[str]
    target: str


def task_sort_key(task: Task) -> Tuple[int, str]:
    return priority_rank(task.priority), task.title


def group_tasks_by_date(tasks: Iterable[Task]) -> Dict[str, List[Task]]:
    """Bucket dated tasks by due date, each bucket ordered by (priority, title)."""
    grouped: Dict[str, List[Task]] = {}
    for task in tasks:
        if not task.due_date:
            continue
        grouped.setdefault(task.due_date, []).append(task)
    for bucket in grouped.values():
        bucket.sort(key=task_sort_key)
    return grouped


def count_undated(tasks: Iterable[Task]) -> int:
    return sum(1 for t in tasks if not t.due_date)


def month_grid(year: int, month: int) -> List[Optional[CalendarDay]]:
    """
    Weekday cells of one month, padded with ``None`` blanks.

    Leading blanks put the first weekday under its Mon-Fri column; trailing
    blanks complete the last row so ``len(grid) % COLS == 0``.
    """
    days_in_month = _calendar.monthrange(year, month)[1]
    weekdays = [
        CalendarDay(year, month, d)
        for d in range(1, days_in_month + 1)
        if date(year, month, d).weekday() < 5
    ]

    cells: List[Optional[CalendarDay]] = []
    if weekdays:
        first = weekdays[0]
        cells.extend([None] * min(date(first.year, first.month, first.day).weekday(), COLS - 1))
    cells.extend(weekdays)
    cells.extend([None] * ((COLS - len(cells) % COLS) % COLS))
    return cells


def shift_month(year: int, month: int, offset: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def tasks_in_month(grid: Sequence[Optional[CalendarDay]], grouped: Dict[str, List[Task]]) -> int:
    return sum(len(grouped.get(cell.date_str, ())) for cell in grid if cell is not None)


def plan_reschedule(tasks: Iterable[Task], task_id: str, target) -> Optional[Reschedule]:
    """What a drop of ``task_id`` onto ``target`` changes, or None for a no-op."""
    target = day_str(target)
    for task in tasks:
        if task.id == task_id:
            if task.due_date == target:
                return None
            return Reschedule(task_id=task_id, previous=task.due_date, target=target)
    return None


def with_due_date(tasks: Iterable[Task], task_id: str, due_date: Optional[str]) -> List[Task]:
    return [t.model_copy(update={"due_date": due_date}) if t.id == task_id else t for t in tasks]
