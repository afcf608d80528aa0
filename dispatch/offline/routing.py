"""
Declarative fetch routing: first matching route decides the caching policy.

Only same-origin GET requests are ever routed; everything else passes
through untouched.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Pattern, Sequence

from dispatch.offline.cache import Request


class Policy(str, Enum):
    PASSTHROUGH = "passthrough"
    NETWORK_ONLY = "network_only"
    NETWORK_FIRST = "network_first"
    STALE_WHILE_REVALIDATE = "stale_while_revalidate"


@dataclass(frozen=True)
class Route:
    policy: Policy
    prefix: Optional[str] = None
    pattern: Optional[Pattern[str]] = None
    navigation: bool = False

    def matches(self, request: Request) -> bool:
        if self.navigation:
            return request.is_navigation
        path = request.path
        if self.prefix is not None and path.startswith(self.prefix):
            return True
        return self.pattern is not None and self.pattern.search(path) is not None


STATIC_EXTENSIONS = re.compile(r"\.(png|svg|ico|woff2?|css|js)$")

DEFAULT_ROUTES: Sequence[Route] = (
    # live data must never come from the cache
    Route(Policy.NETWORK_ONLY, prefix="/api/"),
    Route(Policy.NETWORK_ONLY, prefix="/auth/"),
    Route(Policy.NETWORK_FIRST, navigation=True),
    Route(Policy.STALE_WHILE_REVALIDATE, prefix="/_next/static/"),
    Route(Policy.STALE_WHILE_REVALIDATE, prefix="/static/"),
    Route(Policy.STALE_WHILE_REVALIDATE, pattern=STATIC_EXTENSIONS),
)


def resolve(request: Request, origin: str, routes: Sequence[Route] = DEFAULT_ROUTES) -> Policy:
    if request.method.upper() != "GET" or request.origin != origin:
        return Policy.PASSTHROUGH
    for route in routes:
        if route.matches(request):
            return route.policy
    return Policy.PASSTHROUGH
