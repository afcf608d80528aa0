"""Network access for the offline cache manager, built on httpx."""
from __future__ import annotations

import logging
from typing import Optional

import httpx

from dispatch.errors import NetworkError
from dispatch.offline.cache import Request, Response

logger = logging.getLogger(__name__)


class HttpxFetcher:
    """
    Callable ``Request -> Response``.

    HTTP error statuses come back as responses; any
    ``httpx.RequestError`` becomes ``NetworkError``.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0) -> None:
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def __call__(self, request: Request) -> Response:
        try:
            r = await self.client.request(request.method, request.url, headers=request.headers)
        except httpx.RequestError as e:
            logger.debug("%s %s failed: %s", request.method, request.url, e)
            raise NetworkError(str(e) or type(e).__name__, {"url": request.url}) from e
        return Response(status=r.status_code, headers=dict(r.headers), body=r.content)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
