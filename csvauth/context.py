"""Explicit per-client state passed into and out of the auth facade.

The caller owns persistence of ``SessionContext`` between requests (for
example in a cookie-keyed server-side bag); the facade only reads and
mutates the value it is handed.
"""

from __future__ import annotations

from pydantic import BaseModel


class RequestInfo(BaseModel):
    """Request data already extracted by the caller."""

    ip_address: str = "0.0.0.0"
    user_agent: str = ""


class SessionContext(BaseModel):
    user_id: int | None = None
    username: str | None = None
    email: str | None = None
    session_token: str | None = None
    ip_address: str | None = None
    csrf_token: str | None = None

    def clear(self) -> None:
        for field in type(self).model_fields:
            setattr(self, field, None)

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, field) is None for field in type(self).model_fields)
