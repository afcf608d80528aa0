"""Dispatch: tasks, notes, projects, calendar and priority inbox."""

__version__ = "0.3.0"
