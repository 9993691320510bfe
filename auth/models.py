"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work.

Layer rule: no imports from api/, core/, or cache/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Account:
    """A registered user of the mentoring app.

    username is unique and case-sensitive. email is unique case-insensitively;
    it is stored as entered and compared on lower(email).

    hashed_password is a bcrypt hash -- the plaintext is never kept.
    """

    username: str
    email: str
    full_name: str
    hashed_password: str
    id: int | None = None
    created_at: str | None = None
