"""
auth/service.py -- Registration, authentication and role authorization.

AuthService composes the sanitizer, PasswordHasher, CredentialStore and
TokenStore. It holds no mutable state of its own, so one instance is shared
by every request thread.

Security:
  authenticate() never tells the caller why it failed. Unknown username,
  wrong password and a storage error all return None, and the unknown-user
  branch still runs a full bcrypt verification against a dummy hash so
  response time does not reveal which usernames exist.

  authorize() is flat: "admin" does NOT imply "user". Callers wanting a
  hierarchy combine several authorize() calls.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging

from auth.errors import InvalidInput, StorageUnavailable
from auth.models import DEFAULT_ROLE, UserRecord
from auth.passwords import PasswordHasher
from auth.sanitizer import sanitize_email, sanitize_username
from auth.store import CredentialStore
from auth.tokens import TokenStore

logger = logging.getLogger("safevault.auth")


class AuthService:
    """Entry point for register / authenticate / authorize.

    Usage:
        auth = AuthService(CredentialStore("sqlite://"))
        auth.register("alice", "alice@example.com", "P@ssw0rd!")
        user = auth.authenticate("alice", "P@ssw0rd!")
        auth.authorize(user, "admin")   # False
    """

    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher | None = None,
        tokens: TokenStore | None = None,
    ) -> None:
        self.store = store
        self.hasher = hasher or PasswordHasher()
        self.tokens = tokens or TokenStore()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, username: str, email: str, password: str, role: str | None = DEFAULT_ROLE) -> None:
        """Validate, hash and persist a new user.

        Raises InvalidInput("username" | "email" | "password") when a field is
        rejected, DuplicateUsername when the sanitized username is taken, and
        StorageUnavailable when the database fails.

        The stored username is the sanitized one, which may differ from the input.
        """
        clean_user = sanitize_username(username)
        if not clean_user:
            raise InvalidInput("username")
        clean_email = sanitize_email(email)
        if not clean_email:
            raise InvalidInput("email")
        if not password or not password.strip():
            raise InvalidInput("password")

        password_hash = self.hasher.hash(password)
        role = (role or "").strip() or DEFAULT_ROLE
        self.store.insert_user(clean_user, clean_email, password_hash, role)
        logger.info("Registered user %s (role=%s)", clean_user, role)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def authenticate(self, username: str, password: str) -> UserRecord | None:
        """Return the matching UserRecord, or None on any failure."""
        clean_user = sanitize_username(username)
        if not clean_user:
            return None
        try:
            record = self.store.get_user_by_username(clean_user)
        except StorageUnavailable:
            logger.warning("Authentication for %s failed: credential store unavailable", clean_user)
            return None
        if record is None:
            # Equalize timing -- do NOT return before running bcrypt.
            self.hasher.dummy_verify(password)
            logger.info("Authentication failed for %s", clean_user)
            return None
        if not self.hasher.verify(password, record.password_hash):
            logger.info("Authentication failed for %s", clean_user)
            return None
        return record

    def login(self, username: str, password: str) -> tuple[UserRecord, str] | None:
        """Authenticate and, on success, issue a session token for the user."""
        record = self.authenticate(username, password)
        if record is None:
            return None
        return record, self.tokens.issue(record.username)

    def user_for_token(self, token: str | None) -> UserRecord | None:
        """Resolve a session token to the current UserRecord of its principal.

        The record is re-read on every call, so the role checked by authorize()
        is the stored one, not a copy taken at login time.
        """
        username = self.tokens.lookup(token)
        if username is None:
            return None
        return self.store.get_user_by_username(username)

    def logout(self, token: str | None) -> bool:
        return self.tokens.revoke(token)

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    @staticmethod
    def authorize(user: UserRecord | None, required_role: str | None) -> bool:
        """Return True if user holds required_role (case-insensitive, no hierarchy).

        An empty required_role means the resource is open to any user; a
        missing user is never authorized.
        """
        if user is None:
            return False
        if not required_role:
            return True
        return (user.role or "").lower() == required_role.lower()
