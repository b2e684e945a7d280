"""
csvauth: credential and session manager backed by CSV tables.

Layers, leaf first:
1. CsvRecordStore - file-backed tables with atomic rewrites
2. security / validation - password hashing and input rules
3. SessionService - session tokens and expiry
4. AbuseControl - rate limiting and account lockout
5. AuthService - register/login/logout facade
"""

from csvauth.config import AuthConfig
from csvauth.context import RequestInfo, SessionContext
from csvauth.schemas import AuthResult, AuthUser, UserStats
from csvauth.services.auth_service import AuthService
from csvauth.stores.csv_store import CsvRecordStore

__all__ = [
    "AuthConfig",
    "AuthResult",
    "AuthService",
    "AuthUser",
    "CsvRecordStore",
    "RequestInfo",
    "SessionContext",
    "UserStats",
]
