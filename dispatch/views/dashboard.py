"""
Dashboard aggregation.

All figures are relative to ``today`` (local date, start of day) and a
forward-looking focus window. Update-time lookbacks use ``now`` which
defaults to the start of ``today`` in UTC.
"""
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from dispatch.schemas import Note, Project, Task
from dispatch.views.common import aware, day_str

FOCUS_WINDOW_DAYS = 7
LOOKBACK_DAYS = 7
ACTIVITY_LIMIT = 6
ACTIVITY_PER_TYPE = 4
UPCOMING_LIMIT = 5


class Deadline(str, Enum):
    OVERDUE = "overdue"
    DUE_TODAY = "due_today"
    DUE_SOON = "due_soon"
    BACKLOG = "backlog"
    LATER = "later"
    DONE = "done"


@dataclass(frozen=True)
class ActivityItem:
    id: str
    type: str  # "task" | "note"
    title: str
    date: datetime
    status: Optional[str] = None

    @property
    def label(self) -> str:
        if self.type == "note":
            return "Updated note"
        return "Completed task" if self.status == "done" else "Updated task"


@dataclass
class DashboardSummary:
    overdue: List[Task] = field(default_factory=list)
    due_today: List[Task] = field(default_factory=list)
    due_soon: List[Task] = field(default_factory=list)
    backlog: List[Task] = field(default_factory=list)
    upcoming: List[Task] = field(default_factory=list)

    task_count: int = 0
    open_count: int = 0
    in_progress_count: int = 0
    done_this_week: int = 0

    note_count: int = 0
    notes_this_week: int = 0

    project_count: int = 0
    active_projects: int = 0
    completed_projects: int = 0

    activity: List[ActivityItem] = field(default_factory=list)
    task_activity: List[ActivityItem] = field(default_factory=list)
    note_activity: List[ActivityItem] = field(default_factory=list)

    focus_percent: Optional[int] = None

    @property
    def focus_clear(self) -> bool:
        return self.focus_percent is None


def classify_deadline(task: Task, today, window_days: int = FOCUS_WINDOW_DAYS) -> Deadline:
    if task.status == "done":
        return Deadline.DONE
    if not task.due_date:
        return Deadline.BACKLOG
    today_s = day_str(today)
    window_end = _window_end(today, window_days)
    if task.due_date < today_s:
        return Deadline.OVERDUE
    if task.due_date == today_s:
        return Deadline.DUE_TODAY
    if task.due_date <= window_end:
        return Deadline.DUE_SOON
    return Deadline.LATER


def _window_end(today, window_days: int) -> str:
    if isinstance(today, str):
        today = date.fromisoformat(today)
    return (today + timedelta(days=window_days)).isoformat()


def recent_activity(
    tasks: Iterable[Task], notes: Iterable[Note], limit: int = ACTIVITY_LIMIT
) -> List[ActivityItem]:
    items = [
        ActivityItem(id=f"task-{t.id}", type="task", title=t.title, date=aware(t.updated_at), status=t.status)
        for t in tasks
    ]
    items.extend(
        ActivityItem(id=f"note-{n.id}", type="note", title=n.title, date=aware(n.updated_at))
        for n in notes
    )
    items.sort(key=lambda item: item.date, reverse=True)
    return items[:limit]


def split_activity(
    items: Sequence[ActivityItem], per_type: int = ACTIVITY_PER_TYPE
) -> Tuple[List[ActivityItem], List[ActivityItem]]:
    task_items = [i for i in items if i.type == "task"][:per_type]
    note_items = [i for i in items if i.type == "note"][:per_type]
    return task_items, note_items


def focus_percentage(tasks: Iterable[Task], today, window_days: int = FOCUS_WINDOW_DAYS) -> Optional[int]:
    """Percent of tasks due inside the focus window that are done; None when the window is clear."""
    today_s = day_str(today)
    window_end = _window_end(today, window_days)
    in_window = [t for t in tasks if t.due_date and today_s <= t.due_date <= window_end]
    if not in_window:
        return None
    done = sum(1 for t in in_window if t.status == "done")
    # half-up, not banker's rounding
    return int(math.floor(done * 100 / len(in_window) + 0.5))


def summarize_dashboard(
    tasks: Sequence[Task],
    notes: Sequence[Note],
    projects: Sequence[Project] = (),
    *,
    today,
    now: Optional[datetime] = None,
    window_days: int = FOCUS_WINDOW_DAYS,
) -> DashboardSummary:
    if isinstance(today, str):
        today = date.fromisoformat(today)
    if now is None:
        now = datetime.combine(today, time.min, tzinfo=timezone.utc)
    since = aware(now) - timedelta(days=LOOKBACK_DAYS)
    today_s = today.isoformat()

    summary = DashboardSummary()
    buckets = {
        Deadline.OVERDUE: summary.overdue,
        Deadline.DUE_TODAY: summary.due_today,
        Deadline.DUE_SOON: summary.due_soon,
        Deadline.BACKLOG: summary.backlog,
    }
    for task in tasks:
        bucket = buckets.get(classify_deadline(task, today, window_days))
        if bucket is not None:
            bucket.append(task)

    summary.upcoming = sorted(
        (t for t in tasks if t.due_date and t.due_date > today_s and t.status != "done"),
        key=lambda t: t.due_date,
    )[:UPCOMING_LIMIT]

    summary.task_count = len(tasks)
    summary.open_count = sum(1 for t in tasks if t.status == "open")
    summary.in_progress_count = sum(1 for t in tasks if t.status == "in_progress")
    summary.done_this_week = sum(
        1 for t in tasks if t.status == "done" and aware(t.updated_at) >= since
    )

    summary.note_count = len(notes)
    summary.notes_this_week = sum(1 for n in notes if aware(n.updated_at) >= since)

    summary.project_count = len(projects)
    summary.active_projects = sum(1 for p in projects if p.status == "active")
    summary.completed_projects = sum(1 for p in projects if p.status == "completed")

    summary.activity = recent_activity(tasks, notes)
    summary.task_activity, summary.note_activity = split_activity(summary.activity)

    summary.focus_percent = focus_percentage(tasks, today, window_days)
    return summary
