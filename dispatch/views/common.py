"""Shared ordering and date helpers for the view derivations."""
from datetime import date, datetime, timezone
from typing import Union

PRIORITY_RANK = {"high": 0, "medium": 1, "low": 2}
UNKNOWN_PRIORITY_RANK = 3


def priority_rank(priority: str) -> int:
    return PRIORITY_RANK.get(priority, UNKNOWN_PRIORITY_RANK)


def day_str(day: Union[date, str]) -> str:
    """ISO date string; due dates compare lexicographically."""
    if isinstance(day, str):
        return day
    return day.isoformat()


def aware(value: datetime) -> datetime:
    # naive timestamps are UTC everywhere in Dispatch
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
