"""
auth/sanitizer.py -- Input normalization for usernames and emails, and
HTML escaping for outbound strings.

Sanitization is defense-in-depth. Bound parameters in auth/store.py are the
real SQL-injection defense; these functions keep stored usernames inside a
printable, URL-safe character class and reject malformed emails early.

All three functions are pure and never raise on str or None input.
"""

from __future__ import annotations

import html
import re

USERNAME_MAX_LEN = 50
EMAIL_MAX_LEN = 254

# Anything outside [A-Za-z0-9_.-@] is stripped. ASCII only: \w would let
# Unicode letters through.
_DISALLOWED_USERNAME_CHARS = re.compile(r"[^A-Za-z0-9_.\-@]")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def sanitize_username(value: str | None) -> str:
    """Return the cleaned username, or "" if nothing usable is left.

    Order matters: trim, truncate to 50 characters, then drop disallowed
    characters. The result may differ from the input (and may be shorter than
    50 even when the input was longer). Callers treat "" as invalid.
    """
    if value is None or not value.strip():
        return ""
    trimmed = value.strip()[:USERNAME_MAX_LEN]
    return _DISALLOWED_USERNAME_CHARS.sub("", trimmed)


def sanitize_email(value: str | None) -> str:
    """Return the trimmed email if it looks like local@domain.tld, else "".

    No case folding or other canonicalization is applied.
    """
    if value is None or not value.strip():
        return ""
    trimmed = value.strip()[:EMAIL_MAX_LEN]
    return trimmed if _EMAIL_RE.match(trimmed) else ""


def html_escape(value: str | None) -> str:
    """Escape &, <, >, " and ' (in that order) for HTML text or attribute contexts."""
    if value is None:
        return ""
    return html.escape(value, quote=True)
