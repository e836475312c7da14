"""
auth/validation.py -- Input shape checks for registration and login.

Both validators collect every violated field instead of stopping at the first.
Any JSON value may arrive here; non-strings are reported as field errors,
never raised. Login checks password presence only; the length rule applies
at registration, so accounts created under an older policy can still sign in.
"""

from __future__ import annotations

import re

from auth.errors import FieldError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

EMAIL_MAX_LENGTH = 254

PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 128


def normalize_email(email: object) -> str:
    """Return the canonical form used for storage, lookup and uniqueness."""
    if not isinstance(email, str):
        return ""
    return email.strip().lower()


def is_valid_email(email: object) -> bool:
    normalized = normalize_email(email)
    return 0 < len(normalized) <= EMAIL_MAX_LENGTH and EMAIL_PATTERN.match(normalized) is not None


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _email_errors(email: object) -> list[FieldError]:
    if _is_blank(email):
        return [FieldError("email", "Email is required")]
    if not is_valid_email(email):
        return [FieldError("email", "Please enter a valid email address")]
    return []


def _password_present(password: object, errors: list[FieldError]) -> bool:
    if password is None or password == "":
        errors.append(FieldError("password", "Password is required"))
        return False
    if not isinstance(password, str):
        errors.append(FieldError("password", "Password must be a string"))
        return False
    return True


def validate_registration(email: object, password: object) -> list[FieldError]:
    errors = _email_errors(email)
    if not _password_present(password, errors):
        return errors
    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(FieldError("password", f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"))
    elif len(password) > PASSWORD_MAX_LENGTH:
        errors.append(FieldError("password", f"Password must be less than {PASSWORD_MAX_LENGTH} characters long"))
    return errors


def validate_login(email: object, password: object) -> list[FieldError]:
    errors = _email_errors(email)
    _password_present(password, errors)
    return errors
