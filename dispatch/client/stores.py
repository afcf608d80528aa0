"""
View stores: explicit state per screen, fed by the API client.

Stores own the fetched collections and apply optimistic edits through
``PendingMutations``; everything they show is computed by the pure
functions in ``dispatch.views``.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from typing import Callable, Dict, List, Optional

from dispatch.client.events import NEW_TASK_REQUESTED, PROJECTS_REFRESH, TASKS_CHANGED, EventBus
from dispatch.client.mutations import PendingMutations
from dispatch.client.notify import Notifier
from dispatch.config import get_settings
from dispatch.errors import ApiError, NetworkError
from dispatch.schemas import Project, Task
from dispatch.views.calendar import (
    CalendarDay,
    count_undated,
    group_tasks_by_date,
    month_grid,
    plan_reschedule,
    shift_month,
    tasks_in_month,
    with_due_date,
)
from dispatch.views.dashboard import DashboardSummary, summarize_dashboard
from dispatch.views.inbox import InboxView, next_status, triage_inbox, with_status

logger = logging.getLogger(__name__)

Today = Callable[[], date]


class _TaskStore:
    """Shared plumbing: task collection, refetch, change notifications."""

    def __init__(self, client, bus: EventBus, notifier: Notifier, today: Today = date.today) -> None:
        self.client = client
        self.bus = bus
        self.notifier = notifier
        self.today = today
        self.tasks: List[Task] = []
        self.loading = False
        self.active = True
        self.pending = PendingMutations()
        self._unsubscribe = [bus.subscribe(TASKS_CHANGED, self._on_tasks_changed)]

    async def refresh(self, silent: bool = False) -> None:
        if not silent:
            self.loading = True
        try:
            tasks = await self.client.list_tasks()
        finally:
            if not silent:
                self.loading = False
        if self.active:
            self.tasks = self.pending.reconcile(tasks)

    def _on_tasks_changed(self, payload):
        if payload and self.pending.consume_echo(payload.get("fingerprint")):
            # our own write, the optimistic state already shows it
            return None
        return self._quiet_refresh()

    async def _quiet_refresh(self) -> None:
        try:
            await self.refresh(silent=True)
        except (ApiError, NetworkError) as e:
            logger.warning("Task refresh failed: %s", e)

    async def _revert(self) -> None:
        try:
            await self.refresh()
        except (ApiError, NetworkError) as e:
            logger.warning("Could not refetch tasks after a failed update: %s", e)

    def find(self, task_id: str) -> Optional[Task]:
        return next((t for t in self.tasks if t.id == task_id), None)

    def close(self) -> None:
        self.active = False
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []


class CalendarStore(_TaskStore):
    def __init__(self, client, bus: EventBus, notifier: Notifier, today: Today = date.today) -> None:
        super().__init__(client, bus, notifier, today)
        now = today()
        self.year, self.month = now.year, now.month
        self.new_task_date: Optional[str] = None
        self._unsubscribe.append(bus.subscribe(NEW_TASK_REQUESTED, self._on_new_task))

    # ---------- derived ----------
    @property
    def grid(self) -> List[Optional[CalendarDay]]:
        return month_grid(self.year, self.month)

    @property
    def by_date(self) -> Dict[str, List[Task]]:
        return group_tasks_by_date(self.tasks)

    @property
    def undated_count(self) -> int:
        return count_undated(self.tasks)

    @property
    def month_count(self) -> int:
        return tasks_in_month(self.grid, self.by_date)

    # ---------- navigation ----------
    def navigate(self, offset: int) -> None:
        self.year, self.month = shift_month(self.year, self.month, offset)

    def go_to_today(self) -> None:
        now = self.today()
        self.year, self.month = now.year, now.month

    def _on_new_task(self, payload) -> None:
        self.new_task_date = self.today().isoformat()

    # ---------- drag and drop ----------
    async def drop(self, task_id: str, target) -> bool:
        """Reschedule ``task_id`` onto ``target``; False when nothing changed or the write failed."""
        plan = plan_reschedule(self.tasks, task_id, target)
        if plan is None:
            return False

        token = self.pending.begin(task_id, due_date=plan.target)
        self.tasks = with_due_date(self.tasks, task_id, plan.target)
        try:
            await self.client.update_task(task_id, due_date=plan.target)
        except (ApiError, NetworkError) as e:
            logger.info("Moving task %s to %s failed: %s", task_id, plan.target, e)
            self.pending.discard(token)
            await self._revert()
            self.notifier.error("Failed to move task")
            return False

        fingerprint = self.pending.settle(token, echo=self.active)
        self.notifier.success("Task moved")
        self.bus.publish(TASKS_CHANGED, {"fingerprint": fingerprint})
        return True


class InboxStore(_TaskStore):
    @property
    def view(self) -> InboxView:
        return triage_inbox(self.tasks, self.today())

    async def cycle_status(self, task_id: str) -> Optional[str]:
        """Advance one step in the status cycle; returns the status now shown."""
        task = self.find(task_id)
        if task is None:
            return None
        previous = task.status
        target = next_status(previous)

        token = self.pending.begin(task_id, status=target)
        self.tasks = with_status(self.tasks, task_id, target)
        try:
            await self.client.update_task(task_id, status=target)
        except (ApiError, NetworkError) as e:
            logger.info("Status change of task %s failed: %s", task_id, e)
            self.pending.discard(token)
            # newer edits on the same task may still be in flight
            self.tasks = self.pending.reconcile(with_status(self.tasks, task_id, previous))
            await self._revert()
            self.notifier.error("Failed to update task status")
            shown = self.find(task_id)
            return shown.status if shown is not None else previous

        self.bus.publish(TASKS_CHANGED, {"fingerprint": self.pending.settle(token, echo=self.active)})
        return target


class DashboardStore:
    def __init__(
        self,
        client,
        today: Today = date.today,
        now: Optional[Callable[[], datetime]] = None,
        window_days: Optional[int] = None,
    ) -> None:
        self.client = client
        self.today = today
        self.now = now
        self.window_days = get_settings().focus_window_days if window_days is None else window_days
        self.summary: Optional[DashboardSummary] = None
        self.loading = True
        self.active = True

    async def load(self) -> Optional[DashboardSummary]:
        try:
            tasks, notes, projects = await asyncio.gather(
                self.client.list_tasks(),
                self.client.list_notes(),
                self.client.list_projects(),
            )
        finally:
            if self.active:
                self.loading = False
        if not self.active:
            return None
        self.summary = summarize_dashboard(
            tasks,
            notes,
            projects,
            today=self.today(),
            now=self.now() if self.now else None,
            window_days=self.window_days,
        )
        return self.summary

    def close(self) -> None:
        self.active = False


class ProjectListStore:
    """Active projects with task stats, refetched on ``projects:refresh``."""

    def __init__(self, client, bus: EventBus) -> None:
        self.client = client
        self.projects: List[Project] = []
        self._unsubscribe = bus.subscribe(PROJECTS_REFRESH, lambda payload: self.refresh())

    async def refresh(self) -> List[Project]:
        try:
            self.projects = await self.client.list_projects(status="active", with_stats=True)
        except (ApiError, NetworkError) as e:
            logger.warning("Project list unavailable: %s", e)
            self.projects = []
        return self.projects

    def close(self) -> None:
        self._unsubscribe()
