"""
auth/validation.py -- Input-quality checks for registration.

validate_registration() runs before any duplicate-check query or hashing, so
a malformed request never touches the account store. Checks run in a fixed
order and stop at the first failure; the message of that failure is what the
registration form shows.

Layer rule: no imports from api/, core/, or cache/.
"""

from __future__ import annotations

import re

from auth.errors import ValidationError

_USERNAME_RE = re.compile(r"[A-Za-z0-9_-]+")
_EMAIL_RE = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")
_SPECIAL_CHARS = set('!@#$%^&*(),.?"{}|<>')

MIN_PASSWORD_LENGTH = 8


def validate_registration(
    full_name: str | None, username: str | None, email: str | None, password: str | None
) -> None:
    """Raise ValidationError for the first rule the input breaks.

    Order: required fields (email, password, full name, username), username
    shape, email shape, password strength.
    """
    required = (
        ("email", email, "Email is required."),
        ("password", password, "Password is required."),
        ("full_name", full_name, "Full Name is required."),
        ("username", username, "Username is required."),
    )
    for field, value, message in required:
        if value is None or not value.strip():
            raise ValidationError(message, field=field)

    validate_username(username)
    validate_email(email)
    validate_password(password)


def validate_username(username: str) -> None:
    if any(ch.isspace() for ch in username):
        raise ValidationError("Username cannot contain spaces.", field="username")
    if not _USERNAME_RE.fullmatch(username):
        raise ValidationError(
            "Username contains forbidden characters. Only letters, numbers, '-', and '_' are allowed.",
            field="username",
        )


def validate_email(email: str) -> None:
    """Basic local@domain.tld shape. Deliverability is not checked."""
    if not _EMAIL_RE.fullmatch(email):
        raise ValidationError("Invalid email format.", field="email")


def validate_password(password: str) -> None:
    """Length first, then one character class at a time.

    Each missing class has its own message so the user fixes one thing at a
    time instead of reading a list of rules.
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError("Password must be at least 8 characters long.", field="password")
    if not any(ch.isupper() for ch in password):
        raise ValidationError("Password must contain at least one uppercase letter.", field="password")
    if not any(ch.islower() for ch in password):
        raise ValidationError("Password must contain at least one lowercase letter.", field="password")
    if not any(ch.isdigit() for ch in password):
        raise ValidationError("Password must contain at least one number.", field="password")
    if not any(ch in _SPECIAL_CHARS for ch in password):
        raise ValidationError("Password must contain at least one special character.", field="password")
