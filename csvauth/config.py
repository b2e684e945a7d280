"""Auth configuration management."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env file before reading config, project root first
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path, override=False)
else:
    load_dotenv(override=False)


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AuthConfig:
    """Configuration values for auth flows.

    Defaults come from the environment at import time; any field can be
    overridden per instance, e.g. ``AuthConfig(MAX_LOGIN_ATTEMPTS=3)``.
    """

    # Storage
    DATA_DIR: str = os.getenv("AUTH_DATA_DIR", "data")
    STORE_LOCK_TIMEOUT: float = float(os.getenv("AUTH_STORE_LOCK_TIMEOUT", "10"))
    STORE_FILE_LOCKING: bool = _parse_bool(os.getenv("AUTH_STORE_FILE_LOCKING"), os.name == "posix")

    # Argon2id cost parameters (memory in KiB)
    PASSWORD_MEMORY_COST: int = int(os.getenv("PASSWORD_MEMORY_COST", "65536"))
    PASSWORD_TIME_COST: int = int(os.getenv("PASSWORD_TIME_COST", "4"))
    PASSWORD_PARALLELISM: int = int(os.getenv("PASSWORD_PARALLELISM", "3"))

    # Sessions (seconds)
    SESSION_LIFETIME: int = int(os.getenv("SESSION_LIFETIME", "86400"))
    REMEMBER_ME_LIFETIME: int = int(os.getenv("REMEMBER_ME_LIFETIME", str(30 * 24 * 3600)))
    SESSION_TOKEN_BYTES: int = int(os.getenv("SESSION_TOKEN_BYTES", "32"))
    CSRF_TOKEN_LENGTH: int = int(os.getenv("CSRF_TOKEN_LENGTH", "32"))

    # Abuse control
    MAX_LOGIN_ATTEMPTS: int = int(os.getenv("MAX_LOGIN_ATTEMPTS", "5"))
    LOCKOUT_DURATION: int = int(os.getenv("LOCKOUT_DURATION", "900"))
    RATE_LIMIT_WINDOW: int = int(os.getenv("RATE_LIMIT_WINDOW", "900"))

    # Validation rules
    USERNAME_MIN_LENGTH: int = int(os.getenv("USERNAME_MIN_LENGTH", "3"))
    USERNAME_MAX_LENGTH: int = int(os.getenv("USERNAME_MAX_LENGTH", "50"))
    PASSWORD_MIN_LENGTH: int = int(os.getenv("PASSWORD_MIN_LENGTH", "8"))
    PASSWORD_REQUIRE_UPPERCASE: bool = _parse_bool(os.getenv("PASSWORD_REQUIRE_UPPERCASE"), True)
    PASSWORD_REQUIRE_LOWERCASE: bool = _parse_bool(os.getenv("PASSWORD_REQUIRE_LOWERCASE"), True)
    PASSWORD_REQUIRE_NUMBER: bool = _parse_bool(os.getenv("PASSWORD_REQUIRE_NUMBER"), True)
    PASSWORD_REQUIRE_SPECIAL: bool = _parse_bool(os.getenv("PASSWORD_REQUIRE_SPECIAL"), True)

    # Features
    ACTIVITY_LOGGING_ENABLED: bool = _parse_bool(os.getenv("ACTIVITY_LOGGING_ENABLED"), True)
    REQUIRE_EMAIL_VERIFICATION: bool = _parse_bool(os.getenv("REQUIRE_EMAIL_VERIFICATION"), False)

    # Maintenance retention (days)
    LOGIN_ATTEMPT_RETENTION_DAYS: int = int(os.getenv("LOGIN_ATTEMPT_RETENTION_DAYS", "30"))
    ACTIVITY_LOG_RETENTION_DAYS: int = int(os.getenv("ACTIVITY_LOG_RETENTION_DAYS", "90"))

    # HTTP glue
    SESSION_COOKIE_NAME: str = os.getenv("SESSION_COOKIE_NAME", "auth_session")
    COOKIE_SECURE: bool = _parse_bool(os.getenv("COOKIE_SECURE"), True)
    COOKIE_HTTP_ONLY: bool = _parse_bool(os.getenv("COOKIE_HTTP_ONLY"), True)
    COOKIE_SAMESITE: str = os.getenv("COOKIE_SAME_SITE", "strict")
    CSRF_HEADER_NAME: str = os.getenv("CSRF_HEADER_NAME", "X-CSRF-Token")

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Validate value ranges."""
        positive = (
            "STORE_LOCK_TIMEOUT",
            "PASSWORD_TIME_COST",
            "PASSWORD_PARALLELISM",
            "SESSION_LIFETIME",
            "REMEMBER_ME_LIFETIME",
            "CSRF_TOKEN_LENGTH",
            "MAX_LOGIN_ATTEMPTS",
            "LOCKOUT_DURATION",
            "RATE_LIMIT_WINDOW",
            "USERNAME_MIN_LENGTH",
            "PASSWORD_MIN_LENGTH",
        )
        for name in positive:
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.SESSION_TOKEN_BYTES < 32:
            raise ValueError("SESSION_TOKEN_BYTES must be at least 32 (256 bits)")
        if self.PASSWORD_MEMORY_COST < 8 * self.PASSWORD_PARALLELISM:
            raise ValueError("PASSWORD_MEMORY_COST must be at least 8 KiB per lane")
        if self.USERNAME_MAX_LENGTH < self.USERNAME_MIN_LENGTH:
            raise ValueError("USERNAME_MAX_LENGTH must not be below USERNAME_MIN_LENGTH")
        if self.COOKIE_SAMESITE.lower() not in {"lax", "strict", "none"}:
            raise ValueError("COOKIE_SAME_SITE must be one of lax, strict, none")

    @property
    def data_path(self) -> Path:
        return Path(self.DATA_DIR)
