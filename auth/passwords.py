"""
auth/passwords.py -- bcrypt password hashing.

The bcrypt package is called directly, without a passlib CryptContext: there
is one scheme, no migration path to manage, and bcrypt 4.x refuses inputs
over 72 bytes, which passlib's self-test trips over.

Cost factor comes from Settings.bcrypt_rounds (default 12). Every call to
hash_password() generates a fresh random salt. The raw password is never
logged or stored.
"""

from __future__ import annotations

from functools import lru_cache

import bcrypt

from core.config import get_settings


def hash_password(plain: str, rounds: int | None = None) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only reads the first 72 bytes; auth/inputs.py rejects longer
    passwords at registration so nothing is silently truncated.
    """
    cost = rounds if rounds is not None else get_settings().bcrypt_rounds
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=cost)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. Any error (malformed hash,
    over-long input) counts as a mismatch.
    """
    try:
        candidate = plain.encode("utf-8")
        # bcrypt 4.x truncates at 72 bytes; registration never stores longer.
        if len(candidate) > 72:
            return False
        return bcrypt.checkpw(candidate, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


@lru_cache(maxsize=1)
def dummy_hash() -> str:
    """Hash used to equalize login timing for unknown emails [C1].

    Computed once, at the configured cost, so an unknown-email login spends
    the same bcrypt work as a wrong-password login.
    """
    return hash_password("berestaid_timing_dummy")
