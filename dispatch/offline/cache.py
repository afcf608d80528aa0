"""
Named response caches, keyed by request URL.

A ``CacheStorage`` holds any number of named ``Cache`` objects; the offline
manager only ever writes to the one named after its current version.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Union

import httpx

from dispatch.errors import NetworkError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Request:
    url: str
    method: str = "GET"
    mode: str = "cors"  # "navigate" for full page loads
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def parsed(self) -> httpx.URL:
        return httpx.URL(self.url)

    @property
    def path(self) -> str:
        return self.parsed.path

    @property
    def origin(self) -> str:
        return origin_of(self.url)

    @property
    def is_navigation(self) -> bool:
        return self.mode == "navigate"


@dataclass
class Response:
    status: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def clone(self) -> "Response":
        return Response(status=self.status, headers=dict(self.headers), body=self.body)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


Fetch = Callable[[Request], Awaitable[Response]]
RequestLike = Union[Request, str]


def origin_of(url: str) -> str:
    u = httpx.URL(url)
    default_port = {"http": 80, "https": 443}.get(u.scheme)
    if u.port is None or u.port == default_port:
        return f"{u.scheme}://{u.host}"
    return f"{u.scheme}://{u.host}:{u.port}"


def _key(request: RequestLike) -> str:
    return request.url if isinstance(request, Request) else request


class Cache:
    def __init__(self, name: str) -> None:
        self.name = name
        self._entries: Dict[str, Response] = {}

    async def match(self, request: RequestLike) -> Optional[Response]:
        hit = self._entries.get(_key(request))
        return hit.clone() if hit is not None else None

    async def put(self, request: RequestLike, response: Response) -> None:
        self._entries[_key(request)] = response.clone()

    async def delete(self, request: RequestLike) -> bool:
        return self._entries.pop(_key(request), None) is not None

    async def keys(self) -> List[str]:
        return list(self._entries)

    async def add_all(self, requests: Iterable[Request], fetch: Fetch) -> None:
        """All-or-nothing: nothing is stored unless every response is ok."""
        fetched = []
        for request in requests:
            response = await fetch(request)
            if not response.ok:
                raise NetworkError(
                    f"pre-cache of {request.url} failed with {response.status}",
                    {"url": request.url, "status": response.status},
                )
            fetched.append((request, response))
        for request, response in fetched:
            await self.put(request, response)

    def __len__(self) -> int:
        return len(self._entries)


class CacheStorage:
    def __init__(self) -> None:
        self._caches: Dict[str, Cache] = {}

    async def open(self, name: str) -> Cache:
        cache = self._caches.get(name)
        if cache is None:
            cache = self._caches[name] = Cache(name)
        return cache

    async def has(self, name: str) -> bool:
        return name in self._caches

    async def keys(self) -> List[str]:
        return list(self._caches)

    async def delete(self, name: str) -> bool:
        removed = self._caches.pop(name, None) is not None
        if removed:
            logger.debug("Deleted cache %s", name)
        return removed

    async def match(self, request: RequestLike) -> Optional[Response]:
        for cache in self._caches.values():
            hit = await cache.match(request)
            if hit is not None:
                return hit
        return None
