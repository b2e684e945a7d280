from enum import StrEnum


class Table(StrEnum):
    """Names of the tables backing the auth store."""
    USERS = "users"
    SESSIONS = "sessions"
    LOGIN_ATTEMPTS = "login_attempts"
    ACTIVITY_LOG = "activity_log"


class ActivityType(StrEnum):
    """Activity log action types."""
    USER_REGISTERED = "user_registered"
    USER_LOGIN = "user_login"
    USER_LOGOUT = "user_logout"
    PASSWORD_CHANGED = "password_changed"
    EMAIL_VERIFIED = "email_verified"


class AuthErrorDetails(StrEnum):
    """Authentication and authorization related error messages."""

    PASSWORD_TOO_SHORT = "Password must be at least {min_length} characters"
    PASSWORD_MISSING_UPPERCASE = "Password must contain at least one uppercase letter"
    PASSWORD_MISSING_LOWERCASE = "Password must contain at least one lowercase letter"
    PASSWORD_MISSING_NUMBER = "Password must contain at least one number"
    PASSWORD_MISSING_SPECIAL = "Password must contain at least one special character"

    USERNAME_LENGTH = "Username must be between {min_length} and {max_length} characters"
    USERNAME_CHARACTERS = "Username can only contain letters, numbers, and underscores"
    EMAIL_INVALID = "Invalid email address"

    USER_ALREADY_EXISTS = "Username or email already exists"
    INVALID_CREDENTIALS = "Invalid credentials"
    ACCOUNT_LOCKED = "Account is temporarily locked"
    EMAIL_NOT_VERIFIED = "Please verify your email address"
    ACCOUNT_DISABLED = "Account is disabled"
    RATE_LIMIT_EXCEEDED_LOGIN = "Too many login attempts. Please try again later."

    USER_NOT_FOUND = "User not found"
    CURRENT_PASSWORD_INCORRECT = "Current password is incorrect"
    VERIFICATION_TOKEN_INVALID = "Invalid verification token"
    NOT_AUTHENTICATED = "Not authenticated"
    CSRF_INVALID = "Invalid security token. Please try again."


class GeneralErrorDetails(StrEnum):
    """General error messages."""

    INTERNAL_ERROR = "An internal error occurred"
    REGISTRATION_FAILED = "Registration failed"
