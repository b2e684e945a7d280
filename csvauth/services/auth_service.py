"""Core auth service."""

from __future__ import annotations

import json
import logging
import time
from typing import Callable, TypeVar

from csvauth.config import AuthConfig
from csvauth.constants import ActivityType, AuthErrorDetails, GeneralErrorDetails, Table
from csvauth.context import RequestInfo, SessionContext
from csvauth.exceptions import (
    AuthenticationError,
    AuthException,
    ConflictError,
    RateLimitError,
    StorageError,
    ValidationError,
)
from csvauth.interfaces.record_store import RecordStore
from csvauth.models import UserRecord
from csvauth.schemas import AuthResult, AuthUser, UserStats
from csvauth.security import generate_token, hash_password, password_needs_rehash, tokens_match, verify_password
from csvauth.services.abuse_control import AbuseControl
from csvauth.services.session_service import SessionService
from csvauth.stores.csv_store import CsvRecordStore
from csvauth.utils import Clock
from csvauth.validation import validate_password, validate_registration

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AuthService:
    """Register, log in, log out and inspect accounts.

    Expected failures never escape: every state-changing operation returns an
    ``AuthResult`` and every query returns a plain value (``False``/``None``
    when storage is unavailable).
    """

    def __init__(
        self,
        store: RecordStore,
        config: AuthConfig,
        sessions: SessionService | None = None,
        abuse_control: AbuseControl | None = None,
        clock: Clock = time.time,
    ) -> None:
        self._store = store
        self._config = config
        self._clock = clock
        self._sessions = sessions or SessionService(store, config, clock)
        self._abuse = abuse_control or AbuseControl(store, config, clock)

    @classmethod
    def from_config(cls, config: AuthConfig, clock: Clock = time.time) -> "AuthService":
        return cls(CsvRecordStore.from_config(config, clock=clock), config, clock=clock)

    @property
    def sessions(self) -> SessionService:
        return self._sessions

    # ---------------------------------------------------------------- commands

    def register(
        self,
        username: str,
        email: str,
        password: str,
        request: RequestInfo | None = None,
    ) -> AuthResult:
        return self._guard("register", lambda: self._register(username, email, password, request or RequestInfo()))

    def login(
        self,
        username_or_email: str,
        password: str,
        remember_me: bool = False,
        context: SessionContext | None = None,
        request: RequestInfo | None = None,
    ) -> AuthResult:
        context = context if context is not None else SessionContext()
        return self._guard(
            "login",
            lambda: self._login(username_or_email, password, remember_me, context, request or RequestInfo()),
            context,
        )

    def logout(self, context: SessionContext, request: RequestInfo | None = None) -> AuthResult:
        return self._guard("logout", lambda: self._logout(context, request or RequestInfo()), context)

    def change_password(
        self,
        user_id: int,
        old_password: str,
        new_password: str,
        request: RequestInfo | None = None,
    ) -> AuthResult:
        return self._guard(
            "change_password",
            lambda: self._change_password(user_id, old_password, new_password, request or RequestInfo()),
        )

    def verify_email(self, token: str, request: RequestInfo | None = None) -> AuthResult:
        return self._guard("verify_email", lambda: self._verify_email(token, request or RequestInfo()))

    # ----------------------------------------------------------------- queries

    def is_authenticated(self, context: SessionContext) -> bool:
        return self._query(
            "is_authenticated",
            lambda: self._sessions.is_valid_session(context.session_token, context.user_id),
            False,
        )

    def get_current_user(self, context: SessionContext) -> AuthUser | None:
        def current() -> AuthUser | None:
            if not self._sessions.is_valid_session(context.session_token, context.user_id):
                return None
            user = self._get_user(context.user_id)
            return self._project(user) if user else None

        return self._query("get_current_user", current, None)

    def get_user_stats(self, user_id: int) -> UserStats | None:
        def stats() -> UserStats | None:
            user = self._get_user(user_id)
            if user is None:
                return None
            logins = self._store.filter(
                Table.LOGIN_ATTEMPTS,
                lambda attempt: attempt["username_or_email"] == user.username and attempt["success"] == "1",
            )
            return UserStats(
                member_since=user.created_at,
                last_login=user.last_login,
                total_logins=len(logins),
                total_activities=self._store.count(Table.ACTIVITY_LOG, {"user_id": user_id}),
            )

        return self._query("get_user_stats", stats, None)

    def generate_csrf_token(self, context: SessionContext) -> str:
        """Return the context's CSRF token, creating it on first use."""
        if not context.csrf_token:
            context.csrf_token = generate_token(self._config.CSRF_TOKEN_LENGTH)
        return context.csrf_token

    def verify_csrf_token(self, context: SessionContext, token: str | None) -> bool:
        return tokens_match(context.csrf_token, token)

    # ---------------------------------------------------------- implementation

    def _register(self, username: str, email: str, password: str, request: RequestInfo) -> AuthResult:
        validation = validate_registration(username, email, password, self._config)
        if not validation.valid:
            raise ValidationError(validation.errors)

        email = email.lower()
        password_hash = hash_password(password, self._config)
        verification_token = generate_token(32) if self._config.REQUIRE_EMAIL_VERIFICATION else None

        user_id = self._store.insert_unique(
            Table.USERS,
            {
                "username": username,
                "email": email,
                "password_hash": password_hash,
                "is_verified": verification_token is None,
                "is_active": True,
                "verification_token": verification_token,
                "reset_token": None,
                "reset_token_expires": None,
                "failed_login_attempts": 0,
                "locked_until": None,
                "last_login": None,
            },
            unique=("username", "email"),
        )
        if user_id is None:
            logger.info("Registration rejected: duplicate username or email")
            raise ConflictError(AuthErrorDetails.USER_ALREADY_EXISTS)

        self._log_activity(
            user_id,
            ActivityType.USER_REGISTERED,
            json.dumps({"username": username, "email": email}),
            request,
        )
        logger.info("Registered user %s", user_id)
        return AuthResult(
            success=True,
            data={
                "user_id": user_id,
                "requires_verification": verification_token is not None,
                "verification_token": verification_token,
            },
        )

    def _login(
        self,
        identifier: str,
        password: str,
        remember_me: bool,
        context: SessionContext,
        request: RequestInfo,
    ) -> AuthResult:
        ip_address = request.ip_address

        if self._abuse.is_rate_limited(identifier, ip_address):
            self._abuse.record_attempt(identifier, ip_address, success=False)
            raise RateLimitError(AuthErrorDetails.RATE_LIMIT_EXCEEDED_LOGIN)

        user = self._find_user(identifier)
        # Every attempt is first logged as a failure; a success row follows on the happy path.
        self._abuse.record_attempt(identifier, ip_address, success=False)

        if user is None:
            raise AuthenticationError(AuthErrorDetails.INVALID_CREDENTIALS)

        if self._abuse.is_locked(user):
            raise AuthenticationError(AuthErrorDetails.ACCOUNT_LOCKED, status_code=403)

        if not verify_password(password, user.password_hash, self._config):
            self._abuse.register_failure(user)
            raise AuthenticationError(AuthErrorDetails.INVALID_CREDENTIALS)

        if self._config.REQUIRE_EMAIL_VERIFICATION and not user.is_verified:
            raise AuthenticationError(AuthErrorDetails.EMAIL_NOT_VERIFIED, status_code=403)

        if not user.is_active:
            raise AuthenticationError(AuthErrorDetails.ACCOUNT_DISABLED, status_code=403)

        self._abuse.record_attempt(identifier, ip_address, success=True)
        self._abuse.register_success(user)
        if password_needs_rehash(user.password_hash, self._config):
            self._store.update(
                Table.USERS,
                {"password_hash": hash_password(password, self._config)},
                {"id": user.id},
            )
            logger.info("Upgraded password hash for user %s", user.id)

        session_token = self._sessions.create_session(user.id, remember_me, request)

        context.clear()
        context.user_id = user.id
        context.username = user.username
        context.email = user.email
        context.session_token = session_token
        context.ip_address = ip_address

        self._log_activity(user.id, ActivityType.USER_LOGIN, "Successful login", request)
        logger.info("User %s logged in", user.id)
        return AuthResult(
            success=True,
            user=AuthUser(id=user.id, username=user.username, email=user.email),
            context=context,
        )

    def _logout(self, context: SessionContext, request: RequestInfo) -> AuthResult:
        if context.session_token:
            self._sessions.destroy_session(context.session_token)
        if context.user_id is not None:
            self._log_activity(context.user_id, ActivityType.USER_LOGOUT, "User logged out", request)
            logger.info("User %s logged out", context.user_id)
        context.clear()
        return AuthResult(success=True, context=context)

    def _change_password(
        self,
        user_id: int,
        old_password: str,
        new_password: str,
        request: RequestInfo,
    ) -> AuthResult:
        user = self._get_user(user_id)
        if user is None:
            raise AuthenticationError(AuthErrorDetails.USER_NOT_FOUND, status_code=404)

        if not verify_password(old_password, user.password_hash, self._config):
            raise AuthenticationError(AuthErrorDetails.CURRENT_PASSWORD_INCORRECT)

        validation = validate_password(new_password, self._config)
        if not validation.valid:
            raise ValidationError(validation.errors)

        self._store.update(
            Table.USERS,
            {"password_hash": hash_password(new_password, self._config)},
            {"id": user_id},
        )
        self._log_activity(user_id, ActivityType.PASSWORD_CHANGED, "User changed password", request)
        logger.info("User %s changed password", user_id)
        return AuthResult(success=True)

    def _verify_email(self, token: str, request: RequestInfo) -> AuthResult:
        row = self._store.fetch_one(Table.USERS, {"verification_token": token}) if token else None
        if row is None:
            raise AuthenticationError(AuthErrorDetails.VERIFICATION_TOKEN_INVALID, status_code=400)
        user = UserRecord.from_row(row)
        self._store.update(
            Table.USERS,
            {"is_verified": True, "verification_token": None},
            {"id": user.id},
        )
        self._log_activity(user.id, ActivityType.EMAIL_VERIFIED, "Email address verified", request)
        return AuthResult(success=True, data={"user_id": user.id})

    # ----------------------------------------------------------------- helpers

    def _get_user(self, user_id: int | None) -> UserRecord | None:
        if user_id is None:
            return None
        row = self._store.fetch_one(Table.USERS, {"id": user_id})
        return UserRecord.from_row(row) if row else None

    def _find_user(self, identifier: str) -> UserRecord | None:
        row = self._store.fetch_one(Table.USERS, {"username": identifier})
        if row is None:
            row = self._store.fetch_one(Table.USERS, {"email": identifier.lower()})
        return UserRecord.from_row(row) if row else None

    @staticmethod
    def _project(user: UserRecord) -> AuthUser:
        return AuthUser(
            id=user.id,
            username=user.username,
            email=user.email,
            created_at=user.created_at,
            last_login=user.last_login,
        )

    def _log_activity(self, user_id: int, action: ActivityType, details: str, request: RequestInfo) -> None:
        if not self._config.ACTIVITY_LOGGING_ENABLED:
            return
        try:
            self._store.insert(
                Table.ACTIVITY_LOG,
                {
                    "user_id": user_id,
                    "action_type": action,
                    "action_details": details,
                    "ip_address": request.ip_address,
                    "user_agent": request.user_agent,
                },
            )
        except StorageError:
            # The operation itself has already been written.
            logger.exception("Failed to record %s activity for user %s", action, user_id)

    def _guard(
        self,
        action: str,
        operation: Callable[[], AuthResult],
        context: SessionContext | None = None,
    ) -> AuthResult:
        try:
            return operation()
        except StorageError as exc:
            logger.exception("Storage failure during %s", action)
            return AuthResult(
                success=False,
                error=str(GeneralErrorDetails.INTERNAL_ERROR),
                errors=[str(GeneralErrorDetails.INTERNAL_ERROR)],
                error_kind=exc.kind,
                status_code=exc.status_code,
                context=context,
            )
        except ValidationError as exc:
            return AuthResult(
                success=False,
                error=exc.message,
                errors=exc.errors,
                error_kind=exc.kind,
                status_code=exc.status_code,
                context=context,
            )
        except AuthException as exc:
            return AuthResult(
                success=False,
                error=exc.message,
                errors=[exc.message],
                error_kind=exc.kind,
                status_code=exc.status_code,
                context=context,
            )

    def _query(self, action: str, operation: Callable[[], T], fallback: T) -> T:
        try:
            return operation()
        except StorageError:
            logger.exception("Storage failure during %s", action)
            return fallback
