"""Typed rows and table schemas for the auth store.

Each table has a fixed, ordered field list taken from its record model.
The CSV header is always written from that list, so every row in a file
shares the same columns regardless of which fields an insert supplied.
"""

from __future__ import annotations

from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, ValidationError

from csvauth.constants import Table
from csvauth.exceptions import StorageError

SCHEMA_VERSION = 1


class TableSchema(NamedTuple):
    name: str
    fields: tuple[str, ...]
    indexed: tuple[str, ...] = ()
    version: int = SCHEMA_VERSION


class Record(BaseModel):
    """Base for rows read back from the store.

    Stored values are strings. A blank cell in a field that is not a plain
    ``str`` takes the field's default; a blank required field reads as
    ``None`` and fails validation.
    """

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def from_row(cls, row: dict[str, str]):
        values: dict[str, Any] = {}
        for name, value in row.items():
            field = cls.model_fields.get(name)
            if value == "" and field is not None and field.annotation is not str:
                if not field.is_required():
                    continue
                value = None
            values[name] = value
        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            raise StorageError(f"Corrupt {cls.__name__} row") from exc


class UserRecord(Record):
    id: int
    username: str
    email: str
    password_hash: str
    created_at: str | None = None
    updated_at: str | None = None
    last_login: str | None = None
    is_active: bool = True
    is_verified: bool = False
    verification_token: str | None = None
    reset_token: str | None = None
    reset_token_expires: str | None = None
    failed_login_attempts: int = 0
    locked_until: str | None = None


class SessionRecord(Record):
    id: int
    user_id: int
    session_token: str
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: str | None = None
    expires_at: str
    last_activity: str | None = None


class LoginAttemptRecord(Record):
    id: int
    username_or_email: str
    ip_address: str | None = None
    success: bool = False
    attempted_at: str


class ActivityLogRecord(Record):
    id: int
    user_id: int
    action_type: str
    action_details: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: str | None = None


def _schema(name: str, model: type[Record], indexed: tuple[str, ...] = ()) -> TableSchema:
    return TableSchema(name=name, fields=tuple(model.model_fields), indexed=indexed)


TABLES: dict[str, TableSchema] = {
    Table.USERS: _schema(Table.USERS, UserRecord, indexed=("id", "username", "email")),
    Table.SESSIONS: _schema(Table.SESSIONS, SessionRecord, indexed=("id", "session_token", "user_id")),
    Table.LOGIN_ATTEMPTS: _schema(Table.LOGIN_ATTEMPTS, LoginAttemptRecord),
    Table.ACTIVITY_LOG: _schema(Table.ACTIVITY_LOG, ActivityLogRecord, indexed=("user_id",)),
}
