"""
auth/service.py -- Registration and login.

AuthService ties the validator, the account store and the token issuer
together. It is the only place that decides what a failed login looks like:

  register() raises ValidationError or DuplicateAccountError -- distinct kinds
      so the form can show a field-specific or a generic message.

  login() returns a token or None. Unknown account and wrong password give the
      same None, and both spend one bcrypt verification so timing does not
      tell them apart either.

Layer rule: no imports from api/ or cache/.
"""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy.exc import IntegrityError

from auth.errors import DuplicateAccountError
from auth.models import Account
from auth.tokens import TokenIssuer, burn_password_check, hash_password, verify_password
from auth.validation import validate_registration

logger = logging.getLogger("mentorauth.auth")


class AccountRepository(Protocol):
    def get_by_email(self, email: str) -> Account | None: ...

    def get_by_username(self, username: str) -> Account | None: ...

    def create_account(self, account: Account) -> Account: ...


class AuthService:
    def __init__(self, accounts: AccountRepository, issuer: TokenIssuer) -> None:
        self.accounts = accounts
        self.issuer = issuer

    def register(
        self, full_name: str | None, username: str | None, email: str | None, password: str | None
    ) -> Account:
        """Create an account. Does not log the new user in.

        The email/username lookups are a fast path for a clear error message.
        The store's unique constraints still catch two concurrent registrations
        that both pass the lookups; that IntegrityError is reported the same way.
        """
        validate_registration(full_name, username, email, password)

        existing = self.accounts.get_by_email(email) or self.accounts.get_by_username(username)
        if existing is not None:
            logger.info("Registration rejected: account exists (username=%s)", username)
            raise DuplicateAccountError()

        account = Account(
            username=username,
            email=email,
            full_name=full_name,
            hashed_password=hash_password(password),
        )
        try:
            created = self.accounts.create_account(account)
        except IntegrityError as exc:
            logger.info("Registration rejected by unique constraint (username=%s)", username)
            raise DuplicateAccountError() from exc

        logger.info("Account registered (id=%s, username=%s)", created.id, created.username)
        return created

    def login(self, identifier: str, password: str) -> str | None:
        """Return a session token, or None for any failure.

        An identifier containing "@" is looked up as an email, anything else
        as a username. Exactly one lookup runs.
        """
        if "@" in identifier:
            account = self.accounts.get_by_email(identifier)
        else:
            account = self.accounts.get_by_username(identifier)

        if account is None:
            burn_password_check(password)
            logger.info("Login failed for %s", identifier)
            return None
        if not verify_password(password, account.hashed_password):
            logger.info("Login failed for %s", identifier)
            return None

        return self.issuer.issue(account)
