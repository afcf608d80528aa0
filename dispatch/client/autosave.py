"""
Debounced auto-save for the note editor.

Every edit cancels the pending save and schedules a fresh one; superseded
saves are dropped, never queued or merged.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from dispatch.client.notify import Notifier
from dispatch.config import get_settings
from dispatch.errors import ApiError, NetworkError
from dispatch.schemas import Note

logger = logging.getLogger(__name__)

UNTITLED = "Untitled Note"


class Debouncer:
    def __init__(self, delay: float, action: Callable[..., Awaitable[Any]]) -> None:
        self.delay = delay
        self.action = action
        self._handle: Optional[asyncio.TimerHandle] = None
        self._args: tuple = ()
        self._running: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self, *args) -> None:
        self.cancel()
        self._args = args
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._running = asyncio.ensure_future(self.action(*self._args))

    async def flush(self) -> None:
        """Run a pending action now instead of waiting out the delay."""
        if self._handle is not None:
            self.cancel()
            self._running = asyncio.ensure_future(self.action(*self._args))
        await self.wait()

    async def wait(self) -> None:
        if self._running is not None:
            await self._running


class NoteAutoSaver:
    def __init__(self, client, note: Note, notifier: Notifier, delay: Optional[float] = None) -> None:
        if delay is None:
            delay = get_settings().autosave_delay
        self.client = client
        self.note = note
        self.notifier = notifier
        self.title = note.title
        self.content = note.content or ""
        self.saving = False
        self.saved = False
        self.saves = 0
        self._debouncer = Debouncer(delay, self.save)

    def edit(self, title: str, content: str) -> None:
        self.title = title
        self.content = content
        self.saved = False
        self._debouncer.trigger(title, content)

    async def save(self, title: str, content: str) -> Optional[Note]:
        self.saving = True
        try:
            updated = await self.client.update_note(
                self.note.id, title=title.strip() or UNTITLED, content=content
            )
        except (ApiError, NetworkError) as e:
            logger.debug("Auto-save of note %s failed: %s", self.note.id, e)
            self.notifier.error("Failed to save note")
            return None
        finally:
            self.saving = False
        self.note = updated
        self.saved = True
        self.saves += 1
        return updated

    @property
    def dirty(self) -> bool:
        return self._debouncer.pending

    async def flush(self) -> None:
        await self._debouncer.flush()

    async def wait(self) -> None:
        await self._debouncer.wait()

    def cancel(self) -> None:
        self._debouncer.cancel()
