"""
auth/passwords.py -- bcrypt password hashing with timing equalization.

Using bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug
detection trips over bcrypt 4.x, and direct usage has no compatibility shim.

The work factor is a constructor argument, sourced from BCRYPT_ROUNDS by the
api layer. Tests pass rounds=4 (bcrypt's minimum) to keep the suite fast.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import bcrypt

# bcrypt only looks at the first 72 bytes. Newer releases raise instead of
# truncating, so cap the input explicitly.
_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    """One-way adaptive hashing and constant-time verification.

    Usage:
        hasher = PasswordHasher(rounds=12)
        hashed = hasher.hash("Secret1!")
        hasher.verify("Secret1!", hashed)   # True
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        self._dummy_hash: str | None = None

    def hash(self, plain: str) -> str:
        """Return a salted bcrypt hash of the given plaintext password."""
        return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str | None) -> bool:
        """Return True if the plaintext password matches the bcrypt hash.

        A missing or malformed hash is a mismatch, not an error.
        """
        if not hashed:
            return False
        try:
            return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
        except (ValueError, TypeError):
            return False

    def verify_dummy(self, plain: str) -> None:
        """Burn one bcrypt check against a throwaway hash [C1].

        Call this on the "no such account" path so an unknown identifier costs
        the same time as a wrong password and response timing does not reveal
        which accounts exist.
        """
        if self._dummy_hash is None:
            self._dummy_hash = self.hash("authgate_timing_dummy")
        self.verify(plain, self._dummy_hash)
