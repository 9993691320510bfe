"""
auth/errors.py -- Exception taxonomy for the auth core.

Failed logins are deliberately NOT an exception: AuthService.login() returns
None for every failure so callers cannot tell an unknown account from a wrong
password.

Layer rule: no imports from api/, core/, or cache/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for errors raised by the auth core."""


class ValidationError(AuthError):
    """Registration input failed a quality check.

    field names the offending input ("email", "password", "full_name",
    "username") so the caller can attach the message to the right form field.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class DuplicateAccountError(AuthError):
    """An account with the same email or username already exists."""

    def __init__(self, message: str = "User already exists") -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(AuthError, ValueError):
    """Token configuration is missing or too weak to serve traffic."""
