"""
auth/errors.py -- Error taxonomy for the authentication core.

InvalidInput carries only the offending field name, never the raw value, so
the message is safe to return to a client or write to a log.

A failed login is not an error: AuthService.authenticate() returns None for
both "no such user" and "wrong password".
"""


class AuthError(Exception):
    """Base class for every error raised by the auth core."""


class InvalidInput(AuthError):
    """Sanitization rejected a field (username, email, password)."""

    def __init__(self, field: str) -> None:
        super().__init__(f"invalid {field}")
        self.field = field


class DuplicateUsername(AuthError):
    """The UNIQUE constraint on Users.Username rejected an insert."""

    def __init__(self, username: str) -> None:
        super().__init__("username already exists")
        self.username = username


class StorageUnavailable(AuthError):
    """The credential database could not be reached or returned a driver error."""
