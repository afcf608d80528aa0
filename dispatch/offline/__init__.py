"""Versioned offline response cache for the Dispatch application shell."""
from dispatch.offline.cache import Cache, CacheStorage, Request, Response
from dispatch.offline.fetcher import HttpxFetcher
from dispatch.offline.manager import CACHE_NAME, ClientRegistry, OfflineCacheManager
from dispatch.offline.routing import DEFAULT_ROUTES, Policy, Route, resolve

__all__ = [
    "CACHE_NAME",
    "Cache",
    "CacheStorage",
    "ClientRegistry",
    "DEFAULT_ROUTES",
    "HttpxFetcher",
    "OfflineCacheManager",
    "Policy",
    "Request",
    "Response",
    "Route",
    "resolve",
]
