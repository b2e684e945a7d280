"""Security utilities for auth."""

from __future__ import annotations

import secrets
from functools import lru_cache

import bcrypt
from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError

from csvauth.config import AuthConfig

_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


@lru_cache(maxsize=8)
def _hasher(time_cost: int, memory_cost: int, parallelism: int) -> PasswordHasher:
    return PasswordHasher(
        time_cost=time_cost,
        memory_cost=memory_cost,
        parallelism=parallelism,
        type=Type.ID,
    )


def get_password_hasher(config: AuthConfig) -> PasswordHasher:
    return _hasher(config.PASSWORD_TIME_COST, config.PASSWORD_MEMORY_COST, config.PASSWORD_PARALLELISM)


def _is_bcrypt(hashed_password: str) -> bool:
    return hashed_password.startswith(_BCRYPT_PREFIXES)


def hash_password(password: str, config: AuthConfig) -> str:
    """Hash a password using Argon2id; the result embeds parameters and salt."""
    return get_password_hasher(config).hash(password)


def verify_password(password: str, hashed_password: str, config: AuthConfig) -> bool:
    """Verify a password against an Argon2 or legacy bcrypt hash."""
    if not hashed_password:
        return False
    if _is_bcrypt(hashed_password):
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
        except ValueError:
            return False
    try:
        return get_password_hasher(config).verify(hashed_password, password)
    except (VerificationError, InvalidHashError):
        return False


def password_needs_rehash(hashed_password: str, config: AuthConfig) -> bool:
    """True for bcrypt hashes and for Argon2 hashes made with other parameters."""
    if _is_bcrypt(hashed_password):
        return True
    try:
        return get_password_hasher(config).check_needs_rehash(hashed_password)
    except InvalidHashError:
        return True


def generate_token(n_bytes: int = 32) -> str:
    """Hex-encoded random token with ``n_bytes`` of entropy."""
    return secrets.token_hex(n_bytes)


def tokens_match(expected: str | None, supplied: str | None) -> bool:
    """Constant-time token comparison; missing values never match."""
    if not expected or not supplied:
        return False
    return secrets.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))
