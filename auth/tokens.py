"""
auth/tokens.py -- In-memory store of opaque session tokens.

Security design decisions:
  Tokens carry no meaning: secrets.token_hex(16) gives 128 bits from the OS
      CSPRNG, rendered as 32 lowercase hex characters. The server resolves a
      token to its principal (a username) through this table only, so there
      is nothing to forge or decode.

  Process lifetime: the map lives in memory and is lost on restart. There is
      no expiry timer; callers that want expiry revoke explicitly.

  Token values are never logged. Log lines carry the principal only.

Concurrency: a single lock guards the dict, so issue / lookup / revoke are
linearizable. Once issue() returns, lookup() of that token succeeds from any
thread; once revoke() returns, lookup() fails.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import secrets
import threading

logger = logging.getLogger("safevault.auth")

TOKEN_BYTES = 16  # 128 bits -> 32 hex chars


class TokenStore:
    """Map of token -> username.

    Construct one per application (the API lifespan does) and one per test.

    Usage:
        tokens = TokenStore()
        token = tokens.issue("alice")
        tokens.lookup(token)   # "alice"
        tokens.revoke(token)   # True
        tokens.lookup(token)   # None
    """

    def __init__(self) -> None:
        self._tokens: dict[str, str] = {}
        self._lock = threading.Lock()

    def issue(self, username: str) -> str:
        """Create, remember and return a fresh token for username."""
        with self._lock:
            token = secrets.token_hex(TOKEN_BYTES)
            # A 128-bit collision will not happen with a working RNG; the loop
            # keeps a token bound to exactly one principal regardless.
            while token in self._tokens:
                token = secrets.token_hex(TOKEN_BYTES)
            self._tokens[token] = username
        logger.debug("Issued session token for %s", username)
        return token

    def lookup(self, token: str | None) -> str | None:
        """Return the username the token authenticates, or None."""
        if not token:
            return None
        with self._lock:
            return self._tokens.get(token)

    def revoke(self, token: str | None) -> bool:
        """Forget the token. Returns True if it was present; repeated calls return False."""
        if not token:
            return False
        with self._lock:
            username = self._tokens.pop(token, None)
        if username is None:
            return False
        logger.debug("Revoked session token for %s", username)
        return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)
