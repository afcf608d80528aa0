"""Transient user-facing notifications (toasts)."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL = 4.0


@dataclass(frozen=True)
class Notification:
    kind: str  # "success" | "error"
    message: str
    at: float = field(default_factory=time.monotonic)


class Notifier:
    def __init__(self, ttl: float = DEFAULT_TTL) -> None:
        self.ttl = ttl
        self.history: List[Notification] = []

    def success(self, message: str) -> Notification:
        logger.info(message)
        return self._push("success", message)

    def error(self, message: str) -> Notification:
        logger.warning(message)
        return self._push("error", message)

    def _push(self, kind: str, message: str) -> Notification:
        n = Notification(kind, message)
        self.history.append(n)
        return n

    def active(self, now: Optional[float] = None) -> List[Notification]:
        now = time.monotonic() if now is None else now
        return [n for n in self.history if now - n.at < self.ttl]

    @property
    def latest(self) -> Optional[Notification]:
        return self.history[-1] if self.history else None

    def messages(self, kind: Optional[str] = None) -> List[str]:
        return [n.message for n in self.history if kind is None or n.kind == kind]
