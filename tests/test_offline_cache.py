# tests/test_offline_cache.py

from __future__ import annotations

import pytest

from dispatch.errors import NetworkError
from dispatch.offline import (
    CacheStorage,
    ClientRegistry,
    OfflineCacheManager,
    Policy,
    Request,
    Response,
    resolve,
)

from .fakes import FakeFetch

ORIGIN = "http://localhost:3000"


def shell_routes() -> dict:
    return {
        f"{ORIGIN}/": Response(body=b"<html>shell</html>"),
        f"{ORIGIN}/offline": Response(body=b"<html>You're offline</html>"),
    }


def make_manager(fetch: FakeFetch, storage: CacheStorage = None, **kw) -> OfflineCacheManager:
    return OfflineCacheManager(storage or CacheStorage(), fetch, ORIGIN, **kw)


def test_routing_table() -> None:
    assert resolve(Request(f"{ORIGIN}/api/tasks"), ORIGIN) is Policy.NETWORK_ONLY
    assert resolve(Request(f"{ORIGIN}/auth/login"), ORIGIN) is Policy.NETWORK_ONLY
    assert resolve(Request(f"{ORIGIN}/calendar", mode="navigate"), ORIGIN) is Policy.NETWORK_FIRST
    assert resolve(Request(f"{ORIGIN}/_next/static/app.js"), ORIGIN) is Policy.STALE_WHILE_REVALIDATE
    assert resolve(Request(f"{ORIGIN}/static/logo.png"), ORIGIN) is Policy.STALE_WHILE_REVALIDATE
    assert resolve(Request(f"{ORIGIN}/fonts/inter.woff2"), ORIGIN) is Policy.STALE_WHILE_REVALIDATE
    assert resolve(Request(f"{ORIGIN}/data.json"), ORIGIN) is Policy.PASSTHROUGH

    # non-GET and cross-origin are never intercepted
    assert resolve(Request(f"{ORIGIN}/app.css", method="POST"), ORIGIN) is Policy.PASSTHROUGH
    assert resolve(Request("https://cdn.example.com/app.css"), ORIGIN) is Policy.PASSTHROUGH


@pytest.mark.asyncio
async def test_install_precaches_shell_and_activate_drops_old_versions() -> None:
    storage = CacheStorage()
    old = await storage.open("dispatch-v0")
    await old.put(f"{ORIGIN}/", Response(body=b"old shell"))

    clients = ClientRegistry()
    clients.register("tab-1")
    clients.register("tab-2")

    manager = make_manager(FakeFetch(shell_routes()), storage, clients=clients)
    await manager.install()
    assert manager.state == "installed"
    assert await storage.has("dispatch-v1")

    await manager.activate()
    assert manager.state == "activated"
    assert await storage.keys() == ["dispatch-v1"]

    current = await storage.open("dispatch-v1")
    assert sorted(await current.keys()) == [f"{ORIGIN}/", f"{ORIGIN}/offline"]
    hit = await current.match(f"{ORIGIN}/")
    assert hit.body == b"<html>shell</html>"

    assert all(c.controller == "dispatch-v1" for c in clients.clients.values())


@pytest.mark.asyncio
async def test_install_swallows_precache_failures() -> None:
    fetch = FakeFetch({f"{ORIGIN}/": Response(body=b"shell")})  # /offline is a 404
    manager = make_manager(fetch)
    await manager.install()
    assert manager.state == "installed"
    cache = await manager.storage.open("dispatch-v1")
    # all-or-nothing: the good response is not stored either
    assert len(cache) == 0

    fetch.offline = True
    manager = make_manager(fetch)
    await manager.install()
    assert manager.state == "installed"


@pytest.mark.asyncio
async def test_api_requests_never_touch_the_cache() -> None:
    url = f"{ORIGIN}/api/tasks"
    fetch = FakeFetch({url: Response(body=b"[]")})
    manager = make_manager(fetch)

    request = Request(url)
    assert await manager.handle_fetch(request) is None
    response = await manager.respond(request)
    assert response.body == b"[]"
    assert fetch.calls == [url]

    assert await manager.storage.match(url) is None

    # offline, the error surfaces to the caller instead of a cached copy
    fetch.offline = True
    with pytest.raises(NetworkError):
        await manager.respond(request)


@pytest.mark.asyncio
async def test_static_asset_served_stale_then_revalidated() -> None:
    url = f"{ORIGIN}/_next/static/foo.js"
    fetch = FakeFetch({url: Response(body=b"v2")})
    manager = make_manager(fetch)
    cache = await manager.storage.open("dispatch-v1")
    await cache.put(url, Response(body=b"v1"))

    response = await manager.handle_fetch(Request(url))
    assert response.body == b"v1"

    await manager.drain()
    assert fetch.calls == [url]
    assert (await cache.match(url)).body == b"v2"


@pytest.mark.asyncio
async def test_static_asset_miss_goes_to_network_and_is_cached() -> None:
    url = f"{ORIGIN}/static/logo.svg"
    fetch = FakeFetch({url: Response(body=b"<svg/>")})
    manager = make_manager(fetch)

    response = await manager.handle_fetch(Request(url))
    assert response.body == b"<svg/>"
    cache = await manager.storage.open("dispatch-v1")
    assert (await cache.match(url)).body == b"<svg/>"

    # failed responses are passed on but never stored
    missing = f"{ORIGIN}/static/missing.css"
    response = await manager.handle_fetch(Request(missing))
    assert response.status == 404
    assert await cache.match(missing) is None


@pytest.mark.asyncio
async def test_background_refresh_failure_keeps_cached_copy() -> None:
    url = f"{ORIGIN}/app.css"
    fetch = FakeFetch()
    fetch.offline = True
    manager = make_manager(fetch)
    cache = await manager.storage.open("dispatch-v1")
    await cache.put(url, Response(body=b"body{}"))

    response = await manager.handle_fetch(Request(url))
    assert response.body == b"body{}"
    await manager.drain()
    assert (await cache.match(url)).body == b"body{}"


@pytest.mark.asyncio
async def test_navigation_is_network_first_and_caches_success() -> None:
    url = f"{ORIGIN}/calendar"
    fetch = FakeFetch({url: Response(body=b"calendar page")})
    manager = make_manager(fetch)

    response = await manager.handle_fetch(Request(url, mode="navigate"))
    assert response.body == b"calendar page"
    cache = await manager.storage.open("dispatch-v1")
    assert (await cache.match(url)).body == b"calendar page"


@pytest.mark.asyncio
async def test_offline_navigation_fallbacks() -> None:
    fetch = FakeFetch(shell_routes())
    manager = make_manager(fetch)
    await manager.install()
    fetch.offline = True

    # cached page first
    response = await manager.handle_fetch(Request(f"{ORIGIN}/", mode="navigate"))
    assert response.body == b"<html>shell</html>"

    # uncached page falls back to the offline page
    response = await manager.handle_fetch(Request(f"{ORIGIN}/inbox", mode="navigate"))
    assert b"You're offline" in response.body

    # nothing cached at all: built-in response
    bare = make_manager(fetch)
    response = await bare.handle_fetch(Request(f"{ORIGIN}/inbox", mode="navigate"))
    assert response.status == 503
    assert response.text == "You're offline"
