"""Login rate limiting and account lockout.

Rate limiting is derived from the ``login_attempts`` table: a caller is
limited while the failed attempts inside the window that share either the
identifier or the IP address reach the configured maximum. Lockout is kept
on the user row (``failed_login_attempts`` / ``locked_until``) and is lifted
lazily by the first lookup that finds it expired.
"""

from __future__ import annotations

import logging
import time

from csvauth.config import AuthConfig
from csvauth.constants import Table
from csvauth.interfaces.record_store import RecordStore, Row
from csvauth.models import UserRecord
from csvauth.utils import Clock, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)


class AbuseControl:
    def __init__(self, store: RecordStore, config: AuthConfig, clock: Clock = time.time) -> None:
        self._store = store
        self._config = config
        self._clock = clock

    def recent_failures(self, identifier: str, ip_address: str) -> int:
        cutoff = format_timestamp(self._clock() - self._config.RATE_LIMIT_WINDOW)

        def counts(attempt: Row) -> bool:
            return (
                (attempt["username_or_email"] == identifier or attempt["ip_address"] == ip_address)
                and attempt["success"] == "0"
                and attempt["attempted_at"] > cutoff
            )

        return len(self._store.filter(Table.LOGIN_ATTEMPTS, counts))

    def is_rate_limited(self, identifier: str, ip_address: str) -> bool:
        limited = self.recent_failures(identifier, ip_address) >= self._config.MAX_LOGIN_ATTEMPTS
        if limited:
            logger.warning("Login rate limit reached for ip=%s", ip_address)
        return limited

    def record_attempt(self, identifier: str, ip_address: str, success: bool) -> int:
        return self._store.insert(
            Table.LOGIN_ATTEMPTS,
            {
                "username_or_email": identifier,
                "ip_address": ip_address,
                "success": success,
                "attempted_at": format_timestamp(self._clock()),
            },
        )

    def is_locked(self, user: UserRecord) -> bool:
        if not user.locked_until:
            return False
        locked_until = parse_timestamp(user.locked_until)
        if locked_until is not None and locked_until > self._clock():
            return True
        self._store.update(Table.USERS, {"locked_until": None}, {"id": user.id})
        logger.info("Lock on user %s expired and was cleared", user.id)
        return False

    def register_failure(self, user: UserRecord) -> int:
        """Count a failed password check; lock the account once the maximum is reached.

        Returns the new failure count.
        """
        counted: list[int] = []

        def bump(row: Row) -> dict[str, object]:
            attempts = int(row.get("failed_login_attempts") or 0) + 1
            counted.append(attempts)
            patch: dict[str, object] = {"failed_login_attempts": attempts}
            if attempts >= self._config.MAX_LOGIN_ATTEMPTS:
                patch["locked_until"] = format_timestamp(self._clock() + self._config.LOCKOUT_DURATION)
            return patch

        self._store.modify(Table.USERS, {"id": user.id}, bump)
        attempts = counted[-1] if counted else user.failed_login_attempts
        if attempts >= self._config.MAX_LOGIN_ATTEMPTS:
            logger.warning("User %s locked after %d failed attempts", user.id, attempts)
        return attempts

    def register_success(self, user: UserRecord) -> None:
        self._store.update(
            Table.USERS,
            {
                "failed_login_attempts": 0,
                "locked_until": None,
                "last_login": format_timestamp(self._clock()),
            },
            {"id": user.id},
        )
