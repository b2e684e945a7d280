"""Shared fixtures for the auth test-suite."""

import tempfile

from csvauth.config import AuthConfig
from csvauth.services.auth_service import AuthService
from csvauth.stores.csv_store import CsvRecordStore

START = 1_790_000_000.0

STRONG_PASSWORD = "Str0ng!pw"


class FakeClock:
    """Manually advanced replacement for ``time.time``."""

    def __init__(self, start: float = START):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_config(data_dir: str, **overrides) -> AuthConfig:
    values = {
        "DATA_DIR": data_dir,
        "PASSWORD_MEMORY_COST": 1024,
        "PASSWORD_TIME_COST": 1,
        "PASSWORD_PARALLELISM": 1,
        "STORE_FILE_LOCKING": False,
        "STORE_LOCK_TIMEOUT": 2.0,
        "COOKIE_SECURE": False,
    }
    values.update(overrides)
    return AuthConfig(**values)


class TempStoreMixin:
    """Creates a temporary data directory, a fake clock and a store per test."""

    config_overrides: dict = {}

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.data_dir = self._tmp.name
        self.clock = FakeClock()
        self.config = make_config(self.data_dir, **self.config_overrides)
        self.store = CsvRecordStore(self.data_dir, clock=self.clock)

    def make_service(self, **overrides) -> AuthService:
        config = make_config(self.data_dir, **{**self.config_overrides, **overrides})
        return AuthService(self.store, config, clock=self.clock)
