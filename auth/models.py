"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). CredentialStore maps
rows into these; AuthService and the routes pass them around.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_ROLE = "user"


@dataclass
class UserRecord:
    """A committed credential record from the Users table.

    id is assigned by the store on insert and never changes. username is
    already sanitized when it reaches the store, so it only contains
    [A-Za-z0-9_.-@] and is unique (case-sensitive).

    password_hash is the self-describing "bcrypt-sha256$$2b$<cost>$<salt+digest>" string.
    It is excluded from repr() so a record can be logged without leaking it.
    """

    username: str
    email: str
    role: str = DEFAULT_ROLE  # "user", "admin", or any non-empty tag
    id: int | None = None
    password_hash: str = field(default="", repr=False)
