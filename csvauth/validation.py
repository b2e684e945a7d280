"""Registration and password validation rules."""

from __future__ import annotations

import re

from email_validator import EmailNotValidError, validate_email

from csvauth.config import AuthConfig
from csvauth.constants import AuthErrorDetails
from csvauth.schemas import ValidationResult

_USERNAME_PATTERN = re.compile(r"[A-Za-z0-9_]+")


def validate_password(password: str, config: AuthConfig) -> ValidationResult:
    """Check a password against every configured rule and report all violations."""
    errors: list[str] = []

    if len(password) < config.PASSWORD_MIN_LENGTH:
        errors.append(AuthErrorDetails.PASSWORD_TOO_SHORT.format(min_length=config.PASSWORD_MIN_LENGTH))
    if config.PASSWORD_REQUIRE_UPPERCASE and not re.search(r"[A-Z]", password):
        errors.append(AuthErrorDetails.PASSWORD_MISSING_UPPERCASE)
    if config.PASSWORD_REQUIRE_LOWERCASE and not re.search(r"[a-z]", password):
        errors.append(AuthErrorDetails.PASSWORD_MISSING_LOWERCASE)
    if config.PASSWORD_REQUIRE_NUMBER and not re.search(r"[0-9]", password):
        errors.append(AuthErrorDetails.PASSWORD_MISSING_NUMBER)
    if config.PASSWORD_REQUIRE_SPECIAL and not re.search(r"[^A-Za-z0-9]", password):
        errors.append(AuthErrorDetails.PASSWORD_MISSING_SPECIAL)

    return ValidationResult(valid=not errors, errors=[str(error) for error in errors])


def is_valid_email(email: str) -> bool:
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def validate_registration(username: str, email: str, password: str, config: AuthConfig) -> ValidationResult:
    errors: list[str] = []

    if not config.USERNAME_MIN_LENGTH <= len(username) <= config.USERNAME_MAX_LENGTH:
        errors.append(
            AuthErrorDetails.USERNAME_LENGTH.format(
                min_length=config.USERNAME_MIN_LENGTH,
                max_length=config.USERNAME_MAX_LENGTH,
            )
        )
    if not _USERNAME_PATTERN.fullmatch(username):
        errors.append(AuthErrorDetails.USERNAME_CHARACTERS)

    if not is_valid_email(email):
        errors.append(AuthErrorDetails.EMAIL_INVALID)

    errors.extend(validate_password(password, config).errors)

    return ValidationResult(valid=not errors, errors=[str(error) for error in errors])
