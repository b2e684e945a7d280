"""Auth exceptions."""

from __future__ import annotations


class AuthException(Exception):
    """Base auth exception with HTTP status."""

    kind = "error"

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = str(message)
        self.status_code = status_code


class ValidationError(AuthException):
    """Bad input shape, reported field by field."""

    kind = "validation"

    def __init__(self, errors: list[str], message: str = "Validation failed"):
        super().__init__(message, status_code=400)
        self.errors = list(errors)


class ConflictError(AuthException):
    kind = "conflict"

    def __init__(self, message: str):
        super().__init__(message, status_code=409)


class AuthenticationError(AuthException):
    kind = "authentication"

    def __init__(self, message: str, status_code: int = 401):
        super().__init__(message, status_code=status_code)


class RateLimitError(AuthException):
    kind = "rate_limit"

    def __init__(self, message: str):
        super().__init__(message, status_code=429)


class StorageError(AuthException):
    """I/O or locking failure inside the record store."""

    kind = "storage"

    def __init__(self, message: str):
        super().__init__(message, status_code=500)
