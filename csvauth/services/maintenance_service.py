"""Periodic cleanup of expired and aged-out rows."""

from __future__ import annotations

import logging
import time

from pydantic import BaseModel

from csvauth.config import AuthConfig
from csvauth.constants import Table
from csvauth.interfaces.record_store import RecordStore
from csvauth.services.session_service import SessionService
from csvauth.utils import Clock

logger = logging.getLogger(__name__)

_DAY_SECONDS = 24 * 3600


class MaintenanceReport(BaseModel):
    expired_sessions_removed: int
    login_attempts_removed: int
    activity_entries_removed: int
    table_counts: dict[str, int]


class MaintenanceService:
    """Not used by interactive paths; meant for a scheduled job."""

    def __init__(self, store: RecordStore, config: AuthConfig, clock: Clock = time.time) -> None:
        self._store = store
        self._config = config
        self._clock = clock
        self._sessions = SessionService(store, config, clock)

    def run(self) -> MaintenanceReport:
        now = self._clock()
        sessions_removed = self._sessions.purge_expired()
        attempts_removed = self._store.cleanup(
            Table.LOGIN_ATTEMPTS,
            "attempted_at",
            now - self._config.LOGIN_ATTEMPT_RETENTION_DAYS * _DAY_SECONDS,
        )
        activities_removed = self._store.cleanup(
            Table.ACTIVITY_LOG,
            "created_at",
            now - self._config.ACTIVITY_LOG_RETENTION_DAYS * _DAY_SECONDS,
        )
        report = MaintenanceReport(
            expired_sessions_removed=sessions_removed,
            login_attempts_removed=attempts_removed,
            activity_entries_removed=activities_removed,
            table_counts={str(table): self._store.count(table) for table in Table},
        )
        logger.info(
            "Maintenance finished: %d sessions, %d login attempts, %d activity entries removed",
            sessions_removed,
            attempts_removed,
            activities_removed,
        )
        return report
