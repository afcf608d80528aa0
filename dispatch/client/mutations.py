"""
Pending optimistic mutations.

Each optimistic edit holds its own token recording the fields it expects
the server to end up with. Refreshes are reconciled against the tokens
still in flight, and the change notification a store emits for its own
successful write is recognised by fingerprint and skipped. Overlapping
edits on the same task each keep their own token.
"""
from __future__ import annotations

import itertools
import json
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, Iterable, List, Optional, Tuple

from dispatch.schemas import Task

# unconsumed echoes beyond this are dropped oldest first
MAX_ECHOES = 64


@dataclass(frozen=True)
class MutationToken:
    id: int
    task_id: str
    fields: Tuple[Tuple[str, Any], ...]

    @property
    def expected(self) -> Dict[str, Any]:
        return dict(self.fields)

    @property
    def fingerprint(self) -> str:
        return f"{self.task_id}:{json.dumps(self.expected, sort_keys=True, default=str)}"

    def satisfied_by(self, task: Task) -> bool:
        return task.id == self.task_id and all(getattr(task, k, None) == v for k, v in self.fields)


class PendingMutations:
    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._in_flight: Dict[int, MutationToken] = {}
        self._echoes: Deque[str] = deque(maxlen=MAX_ECHOES)

    def begin(self, task_id: str, **fields) -> MutationToken:
        token = MutationToken(next(self._ids), task_id, tuple(sorted(fields.items())))
        self._in_flight[token.id] = token
        return token

    def settle(self, token: MutationToken, echo: bool = True) -> str:
        """The write succeeded; with ``echo`` its own change notification is expected next."""
        self._in_flight.pop(token.id, None)
        if echo:
            self._echoes.append(token.fingerprint)
        return token.fingerprint

    def discard(self, token: MutationToken) -> None:
        self._in_flight.pop(token.id, None)

    def consume_echo(self, fingerprint: Optional[str]) -> bool:
        if fingerprint and fingerprint in self._echoes:
            self._echoes.remove(fingerprint)
            return True
        return False

    def pending(self, task_id: Optional[str] = None) -> List[MutationToken]:
        tokens = sorted(self._in_flight.values(), key=lambda t: t.id)
        if task_id is None:
            return tokens
        return [t for t in tokens if t.task_id == task_id]

    def matches(self, task: Task) -> bool:
        return any(t.satisfied_by(task) for t in self.pending(task.id))

    def reconcile(self, tasks: Iterable[Task]) -> List[Task]:
        """Authoritative records with still-pending edits laid over them, oldest first."""
        out = []
        for task in tasks:
            for token in self.pending(task.id):
                if not token.satisfied_by(task):
                    task = task.model_copy(update=token.expected)
            out.append(task)
        return out

    def __len__(self) -> int:
        return len(self._in_flight)
