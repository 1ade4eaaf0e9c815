"""
auth/passwords.py -- bcrypt password hashing with timing equalization.

Security design decisions:
  bcrypt directly, no passlib wrapper. The stored string is self-describing
      ("bcrypt-sha256$$2b$12$<22-char salt><31-char digest>"), so the scheme,
      cost and 16-byte salt travel with the hash and a future scheme can be
      detected by prefix. gensalt() draws the salt from os.urandom on every call.

  72-byte limit: bcrypt only looks at the first 72 bytes of its input, and
      bcrypt >= 5 raises ValueError on anything longer. The password is first
      reduced to base64(SHA-256(utf-8 password)), 44 bytes, so every byte of
      the password counts and no input is too long. The base64 step keeps NUL
      bytes out of the bcrypt input.

  verify() never raises. checkpw() compares digests in constant time; any
      malformed, empty or foreign-scheme stored hash yields False.

  dummy_verify() runs a full bcrypt check against a fixed hash of the same
      cost. AuthService calls it when the username does not exist so response
      time does not reveal which usernames are registered.
"""

from __future__ import annotations

import base64
import hashlib

import bcrypt

from core.config import get_settings

SCHEME_PREFIX = "bcrypt-sha256$"


def _prehash(password: str) -> bytes:
    return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest())


class PasswordHasher:
    """Hash and verify passwords with a per-record bcrypt salt.

    Stateless apart from the cost factor and the cached dummy hash, so one
    instance is safe to share across threads.

    Usage:
        hasher = PasswordHasher()            # cost from BCRYPT_ROUNDS
        stored = hasher.hash("P@ssw0rd!")
        hasher.verify("P@ssw0rd!", stored)   # True
    """

    def __init__(self, rounds: int | None = None) -> None:
        self.rounds = rounds if rounds is not None else get_settings().bcrypt_rounds
        # Computed once so the first unknown-user login is not measurably
        # slower than later ones.
        self._dummy_hash = self.hash("safevault_timing_dummy")

    def hash(self, password: str) -> str:
        """Return a fresh salted hash of password. Never equal to the input."""
        digest = bcrypt.hashpw(_prehash(password), bcrypt.gensalt(rounds=self.rounds))
        return SCHEME_PREFIX + digest.decode("ascii")

    def verify(self, password: str | None, stored: str | None) -> bool:
        """Return True iff password matches the stored hash."""
        if not stored or not stored.startswith(SCHEME_PREFIX):
            return False
        try:
            return bcrypt.checkpw(_prehash(password or ""), stored[len(SCHEME_PREFIX):].encode("utf-8"))
        except (ValueError, TypeError):
            return False

    def dummy_verify(self, password: str | None) -> None:
        """Spend one bcrypt verification's worth of time and discard the result."""
        self.verify(password, self._dummy_hash)
