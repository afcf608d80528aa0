import hashlib
import hmac
import logging
import math
import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, EmailStr
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from dispatch import database
from dispatch.config import get_settings
from dispatch.database import ApiKey, Note, Project, Task, User, UserSession, get_db, utcnow
from dispatch.schemas import (
    ApiKeyCreated,
    ApiKeyPublic,
    Note as NoteOut,
    Pagination,
    Project as ProjectOut,
    ProjectColor,
    ProjectStatus,
    Task as TaskOut,
    TaskPage,
    TaskPriority,
    TaskStatus,
    UserPublic,
)

logger = logging.getLogger(__name__)

API_KEY_PREFIX = "dsp_"


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.engine is None:
        database.configure(get_settings().database_url)
    yield


app = FastAPI(title="Dispatch API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    # Malformed JSON and wrong field types are plain client errors here.
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = first.get("msg", "Invalid request")
    if first.get("type") == "json_invalid":
        detail = "Invalid JSON body"
    else:
        detail = f"{loc}: {msg}" if loc else msg
    return JSONResponse(status_code=400, content={"detail": detail})


# -----------------------------
# Helpers
# -----------------------------

def hash_password(pw: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(8)
    digest = hashlib.pbkdf2_hmac("sha256", pw.encode(), salt.encode(), 100_000).hex()
    return f"{salt}${digest}"


def verify_password(pw: str, stored: str) -> bool:
    salt, _, _ = stored.partition("$")
    return hmac.compare_digest(hash_password(pw, salt), stored)


def hash_key(raw: str) -> str:
    return hashlib.sha256(raw.encode()).hexdigest()


def require_title(value: Optional[str]) -> str:
    if value is None or not value.strip():
        raise HTTPException(status_code=400, detail="title is required and must be a non-empty string")
    return value.strip()


def owned(db: Session, model, record_id: str, user: User, label: str):
    """Fetch a row scoped to its owner; other users' rows are simply not found."""
    row = db.scalar(select(model).where(model.id == record_id, model.user_id == user.id))
    if row is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return row


def check_project(db: Session, project_id: Optional[str], user: User) -> None:
    if project_id:
        owned(db, Project, project_id, user, "Project")


# -----------------------------
# Schemas (subset for requests)
# -----------------------------
class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TaskCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: TaskStatus = "open"
    priority: TaskPriority = "medium"
    due_date: Optional[str] = None
    project_id: Optional[str] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[str] = None
    project_id: Optional[str] = None


class NoteCreate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    project_id: Optional[str] = None


class NoteUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    project_id: Optional[str] = None


class ProjectCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    status: ProjectStatus = "active"
    color: ProjectColor = "blue"


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None
    color: Optional[ProjectColor] = None


class ApiKeyCreate(BaseModel):
    name: Optional[str] = None


def validate_due_date(value: Optional[str]) -> Optional[str]:
    if value in (None, ""):
        return None
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise HTTPException(status_code=400, detail="due_date must be a YYYY-MM-DD date")
    return value


# -----------------------------
# Auth utilities
# -----------------------------
def request_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    """Bearer header first, then the session cookie."""
    if authorization and authorization.lower().startswith("bearer "):
        return authorization.split(" ", 1)[1].strip()
    return request.cookies.get(get_settings().cookie_name)


def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    token = request_token(request, authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Missing token")

    if token.startswith(API_KEY_PREFIX):
        key = db.scalar(select(ApiKey).where(ApiKey.key_hash == hash_key(token)))
        if key is None:
            raise HTTPException(status_code=401, detail="Invalid API key")
        key.last_used_at = utcnow()
        db.commit()
        user_id = key.user_id
    else:
        session = db.get(UserSession, token)
        if session is None:
            raise HTTPException(status_code=401, detail="Invalid token")
        if session.expires_at < datetime.now(timezone.utc):
            raise HTTPException(status_code=401, detail="Session expired")
        user_id = session.user_id

    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


# -----------------------------
# Auth endpoints
# -----------------------------
@app.post("/auth/register", status_code=201, response_model=UserPublic)
def register(body: RegisterRequest, db: Session = Depends(get_db)):
    if db.scalar(select(User).where(User.email == body.email)):
        raise HTTPException(status_code=400, detail="Email already registered")
    user = User(name=body.name, email=body.email, password=hash_password(body.password))
    db.add(user)
    db.commit()
    logger.info("Registered user %s", user.id)
    return user


@app.post("/auth/login")
def login(body: LoginRequest, response: Response, db: Session = Depends(get_db)):
    settings = get_settings()
    user = db.scalar(select(User).where(User.email == body.email))
    if not user or not verify_password(body.password, user.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    token = secrets.token_urlsafe(32)
    expires = datetime.now(timezone.utc) + timedelta(days=settings.session_days)
    db.add(UserSession(token=token, user_id=user.id, expires_at=expires))
    db.commit()
    response.set_cookie(
        settings.cookie_name,
        token,
        httponly=True,
        samesite="lax",
        max_age=settings.session_days * 86400,
    )
    return {"token": token, "user": UserPublic.model_validate(user)}


@app.post("/auth/logout")
def logout(
    request: Request,
    response: Response,
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
):
    token = request_token(request, authorization)
    if token and not token.startswith(API_KEY_PREFIX):
        session = db.get(UserSession, token)
        if session is not None:
            db.delete(session)
            db.commit()
    response.delete_cookie(get_settings().cookie_name)
    return {"success": True}


@app.get("/me", response_model=UserPublic)
def me(user: User = Depends(get_current_user)):
    return user


# -----------------------------
# Task endpoints
# -----------------------------
@app.get("/api/tasks")
def list_tasks(
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    project_id: Optional[str] = Query(default=None, alias="projectId"),
    page: Optional[int] = Query(default=None, ge=1),
    limit: int = Query(default=50, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    stmt = select(Task).where(Task.user_id == user.id)
    if status:
        stmt = stmt.where(Task.status == status)
    if priority:
        stmt = stmt.where(Task.priority == priority)
    if project_id:
        stmt = stmt.where(Task.project_id == project_id)
    stmt = stmt.order_by(Task.created_at)

    if page is None:
        return [TaskOut.model_validate(t) for t in db.scalars(stmt)]

    total = db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    rows = db.scalars(stmt.offset((page - 1) * limit).limit(limit))
    return TaskPage(
        data=[TaskOut.model_validate(t) for t in rows],
        pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )


@app.post("/api/tasks", status_code=201, response_model=TaskOut)
def create_task(body: TaskCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    title = require_title(body.title)
    due_date = validate_due_date(body.due_date)
    check_project(db, body.project_id, user)
    now = utcnow()
    task = Task(
        user_id=user.id,
        project_id=body.project_id,
        title=title,
        description=body.description,
        status=body.status,
        priority=body.priority,
        due_date=due_date,
        created_at=now,
        updated_at=now,
    )
    db.add(task)
    db.commit()
    return task


@app.get("/api/tasks/{task_id}", response_model=TaskOut)
def get_task(task_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return owned(db, Task, task_id, user, "Task")


@app.put("/api/tasks/{task_id}", response_model=TaskOut)
def update_task(
    task_id: str,
    body: TaskUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = owned(db, Task, task_id, user, "Task")
    fields: Dict[str, Any] = body.model_dump(exclude_unset=True)
    if not fields:
        return task
    if "title" in fields:
        fields["title"] = require_title(fields["title"])
    if "due_date" in fields:
        fields["due_date"] = validate_due_date(fields["due_date"])
    if fields.get("project_id"):
        check_project(db, fields["project_id"], user)
    for name in ("status", "priority"):
        if name in fields and fields[name] is None:
            raise HTTPException(status_code=400, detail=f"{name} cannot be null")
    for name, value in fields.items():
        setattr(task, name, value)
    task.updated_at = utcnow()
    db.commit()
    return task


@app.delete("/api/tasks/{task_id}")
def delete_task(task_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    task = owned(db, Task, task_id, user, "Task")
    db.delete(task)
    db.commit()
    return {"success": True}


# -----------------------------
# Note endpoints
# -----------------------------
@app.get("/api/notes", response_model=List[NoteOut])
def list_notes(
    search: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    rows = list(db.scalars(select(Note).where(Note.user_id == user.id).order_by(Note.created_at)))
    if search:
        lower = search.lower()
        rows = [n for n in rows if lower in n.title.lower()]
    return rows


@app.post("/api/notes", status_code=201, response_model=NoteOut)
def create_note(body: NoteCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    title = require_title(body.title)
    check_project(db, body.project_id, user)
    now = utcnow()
    note = Note(
        user_id=user.id,
        project_id=body.project_id,
        title=title,
        content=body.content,
        created_at=now,
        updated_at=now,
    )
    db.add(note)
    db.commit()
    return note


@app.get("/api/notes/{note_id}", response_model=NoteOut)
def get_note(note_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return owned(db, Note, note_id, user, "Note")


@app.put("/api/notes/{note_id}", response_model=NoteOut)
def update_note(
    note_id: str,
    body: NoteUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    note = owned(db, Note, note_id, user, "Note")
    fields = body.model_dump(exclude_unset=True)
    if not fields:
        return note
    if "title" in fields:
        fields["title"] = require_title(fields["title"])
    if fields.get("project_id"):
        check_project(db, fields["project_id"], user)
    for name, value in fields.items():
        setattr(note, name, value)
    note.updated_at = utcnow()
    db.commit()
    return note


@app.delete("/api/notes/{note_id}")
def delete_note(note_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    note = owned(db, Note, note_id, user, "Note")
    db.delete(note)
    db.commit()
    return {"success": True}


# -----------------------------
# Project endpoints
# -----------------------------
def project_stats(db: Session, user: User) -> Dict[str, Dict[str, int]]:
    stmt = (
        select(Task.project_id, Task.status, func.count())
        .where(Task.user_id == user.id, Task.project_id.is_not(None))
        .group_by(Task.project_id, Task.status)
    )
    stats: Dict[str, Dict[str, int]] = {}
    for project_id, status, count in db.execute(stmt):
        bucket = stats.setdefault(project_id, {"open": 0, "in_progress": 0, "done": 0, "total": 0})
        bucket[status] = bucket.get(status, 0) + count
        bucket["total"] += count
    return stats


@app.get("/api/projects", response_model=List[ProjectOut])
def list_projects(
    status: Optional[ProjectStatus] = None,
    with_stats: bool = Query(default=False, alias="withStats"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    stmt = select(Project).where(Project.user_id == user.id)
    if status:
        stmt = stmt.where(Project.status == status)
    projects = [ProjectOut.model_validate(p) for p in db.scalars(stmt.order_by(Project.created_at))]
    if with_stats:
        stats = project_stats(db, user)
        empty = {"open": 0, "in_progress": 0, "done": 0, "total": 0}
        for p in projects:
            p.stats = stats.get(p.id, dict(empty))
    return projects


@app.post("/api/projects", status_code=201, response_model=ProjectOut)
def create_project(body: ProjectCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if body.name is None or not body.name.strip():
        raise HTTPException(status_code=400, detail="name is required and must be a non-empty string")
    now = utcnow()
    project = Project(
        user_id=user.id,
        name=body.name.strip(),
        description=body.description,
        status=body.status,
        color=body.color,
        created_at=now,
        updated_at=now,
    )
    db.add(project)
    db.commit()
    return project


@app.get("/api/projects/{project_id}", response_model=ProjectOut)
def get_project(project_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return owned(db, Project, project_id, user, "Project")


@app.put("/api/projects/{project_id}", response_model=ProjectOut)
def update_project(
    project_id: str,
    body: ProjectUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project = owned(db, Project, project_id, user, "Project")
    fields = body.model_dump(exclude_unset=True)
    if not fields:
        return project
    if "name" in fields:
        if fields["name"] is None or not fields["name"].strip():
            raise HTTPException(status_code=400, detail="name is required and must be a non-empty string")
        fields["name"] = fields["name"].strip()
    for name in ("status", "color"):
        if name in fields and fields[name] is None:
            raise HTTPException(status_code=400, detail=f"{name} cannot be null")
    for name, value in fields.items():
        setattr(project, name, value)
    project.updated_at = utcnow()
    db.commit()
    return project


@app.delete("/api/projects/{project_id}")
def delete_project(project_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    project = owned(db, Project, project_id, user, "Project")
    for model in (Task, Note):
        db.execute(
            update(model)
            .where(model.user_id == user.id, model.project_id == project.id)
            .values(project_id=None)
        )
    db.delete(project)
    db.commit()
    return {"success": True}


# -----------------------------
# API keys
# -----------------------------
@app.get("/api/api-keys", response_model=List[ApiKeyPublic])
def list_api_keys(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return list(db.scalars(select(ApiKey).where(ApiKey.user_id == user.id).order_by(ApiKey.created_at)))


@app.post("/api/api-keys", status_code=201, response_model=ApiKeyCreated)
def create_api_key(body: ApiKeyCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if body.name is None or not body.name.strip():
        raise HTTPException(status_code=400, detail="name is required and must be a non-empty string")
    raw = API_KEY_PREFIX + secrets.token_urlsafe(32)
    key = ApiKey(user_id=user.id, name=body.name.strip(), key_hash=hash_key(raw), key_prefix=raw[:8])
    db.add(key)
    db.commit()
    return ApiKeyCreated(
        id=key.id,
        name=key.name,
        key_prefix=key.key_prefix,
        created_at=key.created_at,
        last_used_at=key.last_used_at,
        key=raw,
    )


@app.delete("/api/api-keys/{key_id}")
def delete_api_key(key_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    key = owned(db, ApiKey, key_id, user, "API key")
    db.delete(key)
    db.commit()
    return {"success": True}


# -----------------------------
# Shell pages / health
# -----------------------------
SHELL_HTML = """<!doctype html>
<html lang="en"><head><meta charset="utf-8"><title>{title}</title></head>
<body>{body}</body></html>"""


@app.get("/", response_class=HTMLResponse)
def read_root():
    return SHELL_HTML.format(title="Dispatch", body='<div id="app">Dispatch</div>')


@app.get("/offline", response_class=HTMLResponse)
def offline_page():
    return SHELL_HTML.format(
        title="Offline - Dispatch",
        body="<h1>You're offline</h1><p>Dispatch couldn't connect to the server. "
        "Check your internet connection and try again.</p>",
    )


@app.get("/health")
def health():
    response = {"backend": "running", "database": "unavailable"}
    try:
        if database.ping():
            response["database"] = "connected"
    except Exception as e:
        logger.warning("Database health check failed: %s", e)
        response["database"] = f"error: {str(e)[:50]}"
    return response


def run() -> None:
    import uvicorn

    from dispatch.logging_setup import setup_logging

    settings = get_settings()
    setup_logging(log_dir=settings.data_dir, console_level=settings.log_level.upper())
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
