"""Server-side session issuance and lookup."""

from __future__ import annotations

import logging
import math
import time

from csvauth.config import AuthConfig
from csvauth.constants import Table
from csvauth.context import RequestInfo
from csvauth.interfaces.record_store import RecordStore
from csvauth.models import SessionRecord
from csvauth.security import generate_token
from csvauth.utils import Clock, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)


class SessionService:
    def __init__(self, store: RecordStore, config: AuthConfig, clock: Clock = time.time) -> None:
        self._store = store
        self._config = config
        self._clock = clock

    def create_session(self, user_id: int, remember_me: bool = False, request: RequestInfo | None = None) -> str:
        """Persist a new session row and return its token."""
        request = request or RequestInfo()
        token = generate_token(self._config.SESSION_TOKEN_BYTES)
        lifetime = self._config.REMEMBER_ME_LIFETIME if remember_me else self._config.SESSION_LIFETIME
        now = self._clock()
        self._store.insert(
            Table.SESSIONS,
            {
                "user_id": user_id,
                "session_token": token,
                "ip_address": request.ip_address,
                "user_agent": request.user_agent,
                "created_at": format_timestamp(now),
                "expires_at": format_timestamp(now + lifetime),
                "last_activity": format_timestamp(now),
            },
        )
        return token

    def get_session(self, token: str) -> SessionRecord | None:
        row = self._store.fetch_one(Table.SESSIONS, {"session_token": token})
        return SessionRecord.from_row(row) if row else None

    def is_expired(self, session: SessionRecord) -> bool:
        expires_at = parse_timestamp(session.expires_at)
        return expires_at is None or expires_at <= self._clock()

    def is_valid_session(self, token: str | None, user_id: int | None) -> bool:
        # TODO: slide last_activity/expires_at forward here once idle-timeout sessions are wanted.
        if not token or user_id is None:
            return False
        row = self._store.fetch_one(Table.SESSIONS, {"session_token": token, "user_id": user_id})
        if not row:
            return False
        return not self.is_expired(SessionRecord.from_row(row))

    def destroy_session(self, token: str | None) -> bool:
        if not token:
            return False
        return self._store.delete(Table.SESSIONS, {"session_token": token}) > 0

    def purge_expired(self) -> int:
        """Delete every session whose expiry has passed."""
        # Stored stamps have whole-second precision: expires_at <= now  <=>  expires_at < floor(now) + 1
        removed = self._store.cleanup(Table.SESSIONS, "expires_at", math.floor(self._clock()) + 1)
        if removed:
            logger.info("Purged %d expired sessions", removed)
        return removed
