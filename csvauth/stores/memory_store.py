"""In-memory session context bag for the HTTP glue."""

from __future__ import annotations

import secrets
import threading
import time

from csvauth.context import SessionContext
from csvauth.utils import Clock


class MemoryContextStore:
    """Maps an opaque cookie id to a ``SessionContext``.

    Entries idle for longer than ``max_idle_seconds`` are dropped on access.
    """

    def __init__(self, max_idle_seconds: int = 30 * 24 * 3600, clock: Clock = time.time) -> None:
        self._lock = threading.Lock()
        self._contexts: dict[str, tuple[float, dict]] = {}
        self._max_idle = max_idle_seconds
        self._clock = clock

    def load(self, context_id: str | None) -> tuple[str, SessionContext]:
        now = self._clock()
        with self._lock:
            entry = self._contexts.get(context_id) if context_id else None
            if entry and now - entry[0] <= self._max_idle:
                return context_id, SessionContext.model_validate(entry[1])
            if context_id:
                self._contexts.pop(context_id, None)
        return secrets.token_urlsafe(32), SessionContext()

    def save(self, context_id: str, context: SessionContext) -> None:
        with self._lock:
            self._contexts[context_id] = (self._clock(), context.model_dump())

    def discard(self, context_id: str) -> None:
        with self._lock:
            self._contexts.pop(context_id, None)

    def rotate(self, context_id: str) -> str:
        """Drop the entry under ``context_id`` and hand out a fresh id."""
        self.discard(context_id)
        return secrets.token_urlsafe(32)

    def __len__(self) -> int:
        with self._lock:
            return len(self._contexts)
