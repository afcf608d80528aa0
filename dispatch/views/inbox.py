"""Priority inbox triage and the task status cycle."""
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List

from dispatch.schemas import TASK_STATUSES, Task
from dispatch.views.common import day_str, priority_rank

STATUS_CYCLE = TASK_STATUSES

# Explicit edits may move a task between any two states.
STATUS_TRANSITIONS: Dict[str, FrozenSet[str]] = {s: frozenset(TASK_STATUSES) for s in TASK_STATUSES}


def next_status(status: str) -> str:
    """open -> in_progress -> done -> open; anything unknown restarts at open."""
    if status not in STATUS_CYCLE:
        return STATUS_CYCLE[0]
    return STATUS_CYCLE[(STATUS_CYCLE.index(status) + 1) % len(STATUS_CYCLE)]


def can_transition(current: str, target: str) -> bool:
    return target in STATUS_TRANSITIONS.get(current, frozenset())


@dataclass
class InboxView:
    overdue: List[Task] = field(default_factory=list)
    due_today: List[Task] = field(default_factory=list)
    high_priority: List[Task] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.overdue) + len(self.due_today) + len(self.high_priority)

    @property
    def empty(self) -> bool:
        return self.total == 0


def triage_inbox(tasks: Iterable[Task], today) -> InboxView:
    today_s = day_str(today)
    view = InboxView()
    for task in tasks:
        if task.status == "done":
            continue
        if task.due_date and task.due_date < today_s:
            view.overdue.append(task)
        elif task.due_date == today_s:
            view.due_today.append(task)
        elif not task.due_date and task.priority == "high":
            view.high_priority.append(task)

    view.overdue.sort(key=lambda t: priority_rank(t.priority))
    view.due_today.sort(key=lambda t: priority_rank(t.priority))
    view.high_priority.sort(key=lambda t: t.created_at, reverse=True)
    return view


def with_status(tasks: Iterable[Task], task_id: str, status: str) -> List[Task]:
    return [t.model_copy(update={"status": status}) if t.id == task_id else t for t in tasks]
