"""Tests for auth/store.py -- AccountStore on an in-memory SQLite database."""

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import Account


def _account(username: str = "ada", email: str = "ada@example.com") -> Account:
    return Account(username=username, email=email, full_name="Ada Lovelace", hashed_password="$2b$12$hash")


def test_create_assigns_id_and_timestamp(account_store):
    created = account_store.create_account(_account())
    assert created.id is not None
    assert created.created_at
    assert account_store.has_accounts()


def test_empty_store_has_no_accounts(account_store):
    assert not account_store.has_accounts()


def test_get_by_username_is_exact(account_store):
    account_store.create_account(_account())
    assert account_store.get_by_username("ada").email == "ada@example.com"
    assert account_store.get_by_username("Ada") is None


def test_get_by_email_ignores_case(account_store):
    account_store.create_account(_account(email="Ada@Example.com"))
    found = account_store.get_by_email("ada@EXAMPLE.com")
    assert found is not None
    # Stored as entered.
    assert found.email == "Ada@Example.com"


def test_get_by_id(account_store):
    created = account_store.create_account(_account())
    assert account_store.get_by_id(created.id).username == "ada"
    assert account_store.get_by_id(created.id + 100) is None


def test_duplicate_username_violates_constraint(account_store):
    account_store.create_account(_account())
    with pytest.raises(IntegrityError):
        account_store.create_account(_account(email="other@example.com"))


def test_duplicate_email_in_other_case_violates_constraint(account_store):
    account_store.create_account(_account())
    with pytest.raises(IntegrityError):
        account_store.create_account(_account(username="ada2", email="ADA@example.com"))


def test_ping(account_store):
    assert account_store.ping() is True
