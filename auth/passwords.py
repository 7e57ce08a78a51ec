"""
auth/passwords.py -- One-way password hashing (bcrypt).

bcrypt is used directly rather than through passlib: passlib's wrap-bug
detection builds a password longer than 72 bytes, which bcrypt 4.x rejects.

The cost factor comes from Settings.bcrypt_rounds (12 in production). The
salt is generated per call and embedded in the digest, so hash_password() is
a pure function of its input plus randomness and needs no stored state.

Length rules (6..255 chars) belong to the identity record, not to this module.
bcrypt only reads the first 72 bytes of its input and recent releases raise
on anything longer, so both hashing and verification cut the encoded password
at 72 bytes. Same input, same cut -- verification stays consistent.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import bcrypt

from core.config import get_settings

_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    """Return a bcrypt digest of ``plain`` using the configured cost factor."""
    rounds = get_settings().bcrypt_rounds
    return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str | None) -> bool:
    """Return True if ``plain`` matches the bcrypt digest.

    A missing or malformed digest is a mismatch, never an exception.
    """
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except ValueError:
        return False


# Verified against when a login email does not exist, so the response takes
# as long as a wrong-password response and does not reveal the account exists.
DUMMY_HASH: str = hash_password("usuarios_timing_dummy")
