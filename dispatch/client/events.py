"""
In-process publish/subscribe for cross-component signals.

Events are fire-and-forget and carry an optional payload dict. Handlers
returning an awaitable are scheduled on the running loop; ``drain()`` waits
for them.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Set

logger = logging.getLogger(__name__)

TASKS_CHANGED = "tasks:changed"
NEW_TASK_REQUESTED = "shortcut:new-task"
NEW_NOTE_REQUESTED = "shortcut:new-note"
PROJECTS_REFRESH = "projects:refresh"
SETTINGS_CHANGED = "settings:changed"

Handler = Callable[[Optional[Dict[str, Any]]], Any]


class EventBus:
    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self._pending: Set[asyncio.Future] = set()

    def subscribe(self, event: str, handler: Handler) -> Callable[[], None]:
        self._handlers[event].append(handler)

        def unsubscribe() -> None:
            try:
                self._handlers[event].remove(handler)
            except ValueError:
                pass

        return unsubscribe

    def subscribers(self, event: str) -> int:
        return len(self._handlers.get(event, ()))

    def publish(self, event: str, payload: Optional[Dict[str, Any]] = None) -> int:
        """Deliver to every subscriber; one failing handler does not stop the rest."""
        delivered = 0
        for handler in list(self._handlers.get(event, ())):
            try:
                result = handler(payload)
            except Exception:
                logger.exception("Handler for %s failed", event)
                continue
            if inspect.isawaitable(result):
                fut = asyncio.ensure_future(result)
                self._pending.add(fut)
                fut.add_done_callback(self._finished)
            delivered += 1
        logger.debug("Published %s to %d handler(s)", event, delivered)
        return delivered

    def _finished(self, fut: asyncio.Future) -> None:
        self._pending.discard(fut)
        if not fut.cancelled() and fut.exception() is not None:
            logger.error("Async handler failed: %s", fut.exception())

    async def drain(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
