"""
API schemas for Dispatch.

Read models mirror the relational tables in ``dispatch.database`` and are
shared by the server (response bodies) and the client (parsed payloads
feeding the view derivations). Read models accept any string for
status/priority so that views can rank unknown values; write models are
strict.
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, EmailStr, Field

TaskStatus = Literal["open", "in_progress", "done"]
TaskPriority = Literal["low", "medium", "high"]
ProjectStatus = Literal["active", "completed", "archived"]
ProjectColor = Literal["blue", "green", "yellow", "red", "purple", "pink", "orange", "gray"]

TASK_STATUSES: tuple = get_args(TaskStatus)


class _Record(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Auth and Users
class UserPublic(_Record):
    id: str
    name: str
    email: EmailStr


class ApiKeyPublic(_Record):
    id: str
    name: str
    key_prefix: str
    created_at: datetime
    last_used_at: Optional[datetime] = None


class ApiKeyCreated(ApiKeyPublic):
    key: str = Field(..., description="Raw key, returned only once")


# Tasks
class Task(_Record):
    id: str
    user_id: Optional[str] = None
    project_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    status: str = "open"
    priority: str = "medium"
    due_date: Optional[str] = Field(None, description="ISO date string, no time component")
    created_at: datetime
    updated_at: datetime


# Notes
class Note(_Record):
    id: str
    user_id: Optional[str] = None
    project_id: Optional[str] = None
    title: str
    content: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# Projects
class Project(_Record):
    id: str
    user_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    status: str = "active"
    color: str = "blue"
    created_at: datetime
    updated_at: datetime
    stats: Optional[Dict[str, int]] = None


# Envelopes
class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class TaskPage(BaseModel):
    data: List[Task]
    pagination: Pagination
