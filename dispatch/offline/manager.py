"""
Offline cache manager.

Keeps the application shell usable without a network: a versioned cache is
pre-populated on install, stale versions are dropped on activate, and each
fetch is answered according to the routing table:

- network-only: ``/api/`` and ``/auth/`` (never cached)
- network-first: page navigations, falling back to cache then the offline page
- stale-while-revalidate: static assets, refreshed in the background

Bumping ``cache_name`` is the only way to invalidate entries.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Set

from dispatch.config import Settings, get_settings
from dispatch.errors import NetworkError
from dispatch.offline.cache import Cache, CacheStorage, Fetch, Request, Response
from dispatch.offline.routing import DEFAULT_ROUTES, Policy, Route, resolve

logger = logging.getLogger(__name__)

CACHE_NAME = "dispatch-v1"
PRE_CACHE_PATHS = ("/", "/offline")
OFFLINE_PATH = "/offline"

OFFLINE_FALLBACK = Response(
    status=503,
    headers={"content-type": "text/plain; charset=utf-8"},
    body=b"You're offline",
)


@dataclass
class Client:
    id: str
    controller: Optional[str] = None


@dataclass
class ClientRegistry:
    """Open pages; ``claim`` puts every one under the given cache version at once."""

    clients: Dict[str, Client] = field(default_factory=dict)

    def register(self, client_id: str) -> Client:
        return self.clients.setdefault(client_id, Client(client_id))

    def claim(self, cache_name: str) -> int:
        for client in self.clients.values():
            client.controller = cache_name
        return len(self.clients)


class OfflineCacheManager:
    def __init__(
        self,
        storage: CacheStorage,
        fetch: Fetch,
        origin: str,
        cache_name: str = CACHE_NAME,
        routes: Sequence[Route] = DEFAULT_ROUTES,
        clients: Optional[ClientRegistry] = None,
    ) -> None:
        self.storage = storage
        self.origin = origin.rstrip("/")
        self.cache_name = cache_name
        self.routes = routes
        self.clients = clients or ClientRegistry()
        self.state = "parsed"
        self._fetch = fetch
        self._refreshes: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls,
        fetch: Fetch,
        origin: str,
        settings: Optional[Settings] = None,
        storage: Optional[CacheStorage] = None,
    ) -> "OfflineCacheManager":
        settings = settings or get_settings()
        return cls(storage or CacheStorage(), fetch, origin, cache_name=settings.cache_name)

    def url(self, path: str) -> str:
        return f"{self.origin}{path}"

    # ---------- lifecycle ----------
    async def install(self) -> None:
        cache = await self.storage.open(self.cache_name)
        try:
            await cache.add_all([Request(self.url(p)) for p in PRE_CACHE_PATHS], self._fetch)
        except NetworkError as e:
            # best effort; the shell gets cached on first navigation instead
            logger.debug("Pre-cache failed for %s: %s", self.cache_name, e)
        # skip waiting: a new version takes over without a reload
        self.state = "installed"

    async def activate(self) -> None:
        for name in await self.storage.keys():
            if name != self.cache_name:
                await self.storage.delete(name)
                logger.info("Dropped stale cache %s", name)
        claimed = self.clients.claim(self.cache_name)
        self.state = "activated"
        logger.info("Cache %s active, claimed %d client(s)", self.cache_name, claimed)

    # ---------- fetch ----------
    async def handle_fetch(self, request: Request) -> Optional[Response]:
        """Cached answer for ``request``, or None when the request is not ours to answer."""
        policy = resolve(request, self.origin, self.routes)
        if policy is Policy.NETWORK_FIRST:
            return await self._network_first(request)
        if policy is Policy.STALE_WHILE_REVALIDATE:
            return await self._stale_while_revalidate(request)
        return None

    async def respond(self, request: Request) -> Response:
        """``handle_fetch`` with pass-through requests sent straight to the network."""
        response = await self.handle_fetch(request)
        if response is None:
            response = await self._fetch(request)
        return response

    async def _network_first(self, request: Request) -> Response:
        try:
            response = await self._fetch(request)
        except NetworkError:
            cached = await self.storage.match(request)
            if cached is None:
                cached = await self.storage.match(self.url(OFFLINE_PATH))
            return cached if cached is not None else OFFLINE_FALLBACK.clone()
        if response.ok:
            cache = await self.storage.open(self.cache_name)
            await cache.put(request, response.clone())
        return response

    async def _stale_while_revalidate(self, request: Request) -> Response:
        cache = await self.storage.open(self.cache_name)
        cached = await cache.match(request)
        if cached is None:
            return await self._revalidate(cache, request)
        task = asyncio.get_running_loop().create_task(self._background_refresh(cache, request))
        self._refreshes.add(task)
        task.add_done_callback(self._refreshes.discard)
        return cached

    async def _revalidate(self, cache: Cache, request: Request) -> Response:
        response = await self._fetch(request)
        if response.ok:
            await cache.put(request, response.clone())
        return response

    async def _background_refresh(self, cache: Cache, request: Request) -> None:
        try:
            await self._revalidate(cache, request)
        except NetworkError as e:
            logger.debug("Background refresh of %s failed: %s", request.url, e)

    async def drain(self) -> None:
        """Wait for every in-flight background refresh."""
        while self._refreshes:
            await asyncio.gather(*list(self._refreshes))
