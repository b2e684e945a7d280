import unittest

from csvauth.exceptions import StorageError
from csvauth.models import SessionRecord, UserRecord


def _user_row(**overrides) -> dict:
    row = {
        "id": "1",
        "username": "alice",
        "email": "alice@x.com",
        "password_hash": "h",
        "created_at": "",
        "updated_at": "",
        "last_login": "",
        "is_active": "",
        "is_verified": "",
        "verification_token": "",
        "reset_token": "",
        "reset_token_expires": "",
        "failed_login_attempts": "",
        "locked_until": "",
    }
    row.update(overrides)
    return row


class TestRecordParsing(unittest.TestCase):
    def test_blank_cells_take_field_defaults(self):
        user = UserRecord.from_row(_user_row())

        self.assertTrue(user.is_active)
        self.assertFalse(user.is_verified)
        self.assertEqual(user.failed_login_attempts, 0)
        self.assertIsNone(user.locked_until)
        self.assertIsNone(user.last_login)

    def test_stored_values_are_converted(self):
        user = UserRecord.from_row(_user_row(is_active="0", is_verified="1", failed_login_attempts="3"))

        self.assertFalse(user.is_active)
        self.assertTrue(user.is_verified)
        self.assertEqual(user.failed_login_attempts, 3)

    def test_unknown_columns_are_ignored(self):
        user = UserRecord.from_row(_user_row(nickname="al"))
        self.assertEqual(user.username, "alice")

    def test_blank_required_field_is_a_storage_error(self):
        with self.assertRaises(StorageError):
            SessionRecord.from_row({"id": "1", "user_id": "", "session_token": "t", "expires_at": "x"})

    def test_garbage_in_typed_column_is_a_storage_error(self):
        with self.assertRaises(StorageError):
            UserRecord.from_row(_user_row(failed_login_attempts="many"))


if __name__ == "__main__":
    unittest.main()
