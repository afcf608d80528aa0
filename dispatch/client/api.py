"""Async client for the Dispatch REST API."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from dispatch.errors import ApiError, NetworkError
from dispatch.schemas import ApiKeyCreated, ApiKeyPublic, Note, Project, Task

logger = logging.getLogger(__name__)


def unwrap(data: Any) -> Any:
    """Accept both bare lists and ``{data, pagination}`` envelopes."""
    if isinstance(data, dict) and "data" in data:
        return data["data"]
    return data


class DispatchClient:
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.http = httpx.AsyncClient(base_url=self.base_url, transport=transport, timeout=timeout)
        self.token: Optional[str] = None
        if token:
            self.set_token(token)

    def set_token(self, token: str) -> None:
        self.token = token
        self.http.headers["Authorization"] = f"Bearer {token}"

    async def aclose(self) -> None:
        await self.http.aclose()

    async def __aenter__(self) -> "DispatchClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            r = await self.http.request(method, path, **kwargs)
        except httpx.RequestError as e:
            raise NetworkError(f"{method} {path} failed: {e}") from e
        if r.status_code >= 400:
            try:
                detail = r.json().get("detail", r.text)
            except ValueError:
                detail = r.text
            logger.debug("%s %s -> %s %s", method, path, r.status_code, detail)
            raise ApiError(r.status_code, str(detail))
        if not r.content:
            return None
        return r.json()

    # ---------- auth ----------
    async def login(self, email: str, password: str) -> Dict[str, Any]:
        data = await self._request("POST", "/auth/login", json={"email": email, "password": password})
        self.set_token(data["token"])
        return data

    async def logout(self) -> None:
        await self._request("POST", "/auth/logout")
        self.token = None
        self.http.headers.pop("Authorization", None)

    # ---------- tasks ----------
    async def list_tasks(self, **filters) -> List[Task]:
        params = {k: v for k, v in filters.items() if v is not None}
        data = await self._request("GET", "/api/tasks", params=params)
        return [Task.model_validate(t) for t in unwrap(data)]

    async def get_task(self, task_id: str) -> Task:
        return Task.model_validate(await self._request("GET", f"/api/tasks/{task_id}"))

    async def create_task(self, **fields) -> Task:
        return Task.model_validate(await self._request("POST", "/api/tasks", json=fields))

    async def update_task(self, task_id: str, **fields) -> Task:
        return Task.model_validate(await self._request("PUT", f"/api/tasks/{task_id}", json=fields))

    async def delete_task(self, task_id: str) -> None:
        await self._request("DELETE", f"/api/tasks/{task_id}")

    # ---------- notes ----------
    async def list_notes(self, search: Optional[str] = None) -> List[Note]:
        params = {"search": search} if search else None
        data = await self._request("GET", "/api/notes", params=params)
        return [Note.model_validate(n) for n in unwrap(data)]

    async def get_note(self, note_id: str) -> Note:
        return Note.model_validate(await self._request("GET", f"/api/notes/{note_id}"))

    async def create_note(self, **fields) -> Note:
        return Note.model_validate(await self._request("POST", "/api/notes", json=fields))

    async def update_note(self, note_id: str, **fields) -> Note:
        return Note.model_validate(await self._request("PUT", f"/api/notes/{note_id}", json=fields))

    async def delete_note(self, note_id: str) -> None:
        await self._request("DELETE", f"/api/notes/{note_id}")

    # ---------- projects ----------
    async def list_projects(self, status: Optional[str] = None, with_stats: bool = False) -> List[Project]:
        params: Dict[str, Any] = {}
        if status:
            params["status"] = status
        if with_stats:
            params["withStats"] = "true"
        data = await self._request("GET", "/api/projects", params=params)
        return [Project.model_validate(p) for p in unwrap(data)]

    async def create_project(self, **fields) -> Project:
        return Project.model_validate(await self._request("POST", "/api/projects", json=fields))

    async def update_project(self, project_id: str, **fields) -> Project:
        return Project.model_validate(await self._request("PUT", f"/api/projects/{project_id}", json=fields))

    async def delete_project(self, project_id: str) -> None:
        await self._request("DELETE", f"/api/projects/{project_id}")

    # ---------- api keys ----------
    async def list_api_keys(self) -> List[ApiKeyPublic]:
        return [ApiKeyPublic.model_validate(k) for k in await self._request("GET", "/api/api-keys")]

    async def create_api_key(self, name: str) -> ApiKeyCreated:
        return ApiKeyCreated.model_validate(await self._request("POST", "/api/api-keys", json={"name": name}))

    async def delete_api_key(self, key_id: str) -> None:
        await self._request("DELETE", f"/api/api-keys/{key_id}")
