"""Unit tests for registration input validation in auth/validation.py.

Covers:
- Required-field messages and their order
- Username whitespace and character-set rules
- Email shape
- Password length and character-class rules, one message per missing class
"""

import pytest

from auth.errors import ValidationError
from auth.validation import validate_registration

_VALID = {
    "full_name": "John Doe",
    "username": "johndoe",
    "email": "john.doe@example.com",
    "password": "StrongP@ssword1",
}


def _validate(**overrides) -> None:
    fields = {**_VALID, **overrides}
    validate_registration(fields["full_name"], fields["username"], fields["email"], fields["password"])


def _message(**overrides) -> str:
    with pytest.raises(ValidationError) as excinfo:
        _validate(**overrides)
    return excinfo.value.message


def test_valid_request_passes():
    _validate()


@pytest.mark.parametrize("username", ["validUser", "user_name_123", "user-name", "USER123"])
def test_valid_usernames_pass(username):
    _validate(username=username)


# ---------------------------------------------------------------------------
# Required fields
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "overrides, message, field",
    [
        ({"email": ""}, "Email is required.", "email"),
        ({"password": ""}, "Password is required.", "password"),
        ({"full_name": ""}, "Full Name is required.", "full_name"),
        ({"username": ""}, "Username is required.", "username"),
        ({"email": "   "}, "Email is required.", "email"),
        ({"username": "\t"}, "Username is required.", "username"),
    ],
)
def test_required_fields(overrides, message, field):
    with pytest.raises(ValidationError) as excinfo:
        _validate(**overrides)
    assert excinfo.value.message == message
    assert excinfo.value.field == field


def test_required_checks_run_before_format_checks():
    # Email missing AND username malformed -- the required check wins.
    assert _message(email="", username="bad name") == "Email is required."


def test_empty_email_reported_before_empty_password():
    assert _message(email="", password="") == "Email is required."


# ---------------------------------------------------------------------------
# Username
# ---------------------------------------------------------------------------


def test_username_with_space():
    assert _message(username="user name") == "Username cannot contain spaces."


@pytest.mark.parametrize("username", ["user@name", "user!name", "user#name", "user.name", "user/name", "user\\name"])
def test_username_forbidden_characters(username):
    assert _message(username=username) == (
        "Username contains forbidden characters. Only letters, numbers, '-', and '_' are allowed."
    )


def test_username_checked_before_email():
    assert _message(username="user name", email="plainaddress") == "Username cannot contain spaces."


# ---------------------------------------------------------------------------
# Email
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "email",
    ["plainaddress", "@missingusername.com", "username@.com", "username@domain", "user name@domain.com"],
)
def test_invalid_email(email):
    with pytest.raises(ValidationError) as excinfo:
        _validate(email=email)
    assert excinfo.value.message == "Invalid email format."
    assert excinfo.value.field == "email"


# ---------------------------------------------------------------------------
# Password
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "password, message",
    [
        ("short1!", "Password must be at least 8 characters long."),
        ("alllowercase1!", "Password must contain at least one uppercase letter."),
        ("ALLUPPERCASE1!", "Password must contain at least one lowercase letter."),
        ("NoNumber!", "Password must contain at least one number."),
        ("NoSpecialChar1", "Password must contain at least one special character."),
    ],
)
def test_weak_passwords(password, message):
    assert _message(password=password) == message


def test_password_missing_several_classes_reports_uppercase_first():
    assert _message(password="abcdefgh") == "Password must contain at least one uppercase letter."
