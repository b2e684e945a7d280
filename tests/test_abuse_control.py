import unittest

from csvauth.models import UserRecord
from csvauth.services.abuse_control import AbuseControl
from csvauth.utils import format_timestamp

from tests.support import START, TempStoreMixin


class TestAbuseControl(TempStoreMixin, unittest.TestCase):
    config_overrides = {"MAX_LOGIN_ATTEMPTS": 3, "RATE_LIMIT_WINDOW": 300, "LOCKOUT_DURATION": 600}

    def setUp(self):
        super().setUp()
        self.abuse = AbuseControl(self.store, self.config, self.clock)
        self.user_id = self.store.insert(
            "users",
            {"username": "alice", "email": "alice@x.com", "password_hash": "h", "failed_login_attempts": 0},
        )

    def _user(self) -> UserRecord:
        return UserRecord.from_row(self.store.fetch_one("users", {"id": self.user_id}))

    def test_failures_count_by_identifier_or_ip(self):
        self.abuse.record_attempt("alice", "1.1.1.1", success=False)
        self.abuse.record_attempt("bob", "2.2.2.2", success=False)
        self.abuse.record_attempt("carol", "1.1.1.1", success=False)

        self.assertEqual(self.abuse.recent_failures("alice", "9.9.9.9"), 1)
        self.assertEqual(self.abuse.recent_failures("nobody", "1.1.1.1"), 2)
        self.assertEqual(self.abuse.recent_failures("alice", "1.1.1.1"), 2)

    def test_successes_do_not_count(self):
        for _ in range(5):
            self.abuse.record_attempt("alice", "1.1.1.1", success=True)
        self.assertFalse(self.abuse.is_rate_limited("alice", "1.1.1.1"))

    def test_rate_limit_applies_inside_window_only(self):
        for _ in range(3):
            self.abuse.record_attempt("alice", "1.1.1.1", success=False)

        with self.assertLogs("csvauth.services.abuse_control", level="WARNING"):
            self.assertTrue(self.abuse.is_rate_limited("alice", "1.1.1.1"))
        self.assertTrue(self.abuse.is_rate_limited("alice", "5.5.5.5"))

        self.clock.advance(300)
        self.assertFalse(self.abuse.is_rate_limited("alice", "1.1.1.1"))

    def test_lock_after_max_failures(self):
        self.assertEqual(self.abuse.register_failure(self._user()), 1)
        self.assertEqual(self.abuse.register_failure(self._user()), 2)
        self.assertFalse(self.abuse.is_locked(self._user()))

        with self.assertLogs("csvauth.services.abuse_control", level="WARNING"):
            self.assertEqual(self.abuse.register_failure(self._user()), 3)

        user = self._user()
        self.assertEqual(user.locked_until, format_timestamp(START + 600))
        self.assertTrue(self.abuse.is_locked(user))

    def test_failure_count_is_read_from_store(self):
        stale = self._user()
        self.abuse.register_failure(stale)
        self.assertEqual(self.abuse.register_failure(stale), 2)

    def test_expired_lock_is_cleared_lazily(self):
        for _ in range(3):
            self.abuse.register_failure(self._user())

        self.clock.advance(600)
        self.assertFalse(self.abuse.is_locked(self._user()))
        self.assertIsNone(self._user().locked_until)

    def test_register_success_resets_counters(self):
        for _ in range(3):
            self.abuse.register_failure(self._user())
        self.clock.advance(5)

        self.abuse.register_success(self._user())

        user = self._user()
        self.assertEqual(user.failed_login_attempts, 0)
        self.assertIsNone(user.locked_until)
        self.assertEqual(user.last_login, format_timestamp(START + 5))


if __name__ == "__main__":
    unittest.main()
