"""Session context store interface for the HTTP glue."""

from __future__ import annotations

from typing import Protocol

from csvauth.context import SessionContext


class ContextStore(Protocol):
    def load(self, context_id: str | None) -> tuple[str, SessionContext]:
        ...

    def save(self, context_id: str, context: SessionContext) -> None:
        ...

    def discard(self, context_id: str) -> None:
        ...

    def rotate(self, context_id: str) -> str:
        ...
