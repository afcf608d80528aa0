"""Pure projections of task and note collections for the calendar, dashboard and inbox."""
from dispatch.views.calendar import group_tasks_by_date, month_grid, plan_reschedule
from dispatch.views.dashboard import Deadline, classify_deadline, summarize_dashboard
from dispatch.views.inbox import next_status, triage_inbox

__all__ = [
    "Deadline",
    "classify_deadline",
    "group_tasks_by_date",
    "month_grid",
    "next_status",
    "plan_reschedule",
    "summarize_dashboard",
    "triage_inbox",
]
