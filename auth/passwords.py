"""
auth/passwords.py -- bcrypt password hashing and verification.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

The hash string embeds its own salt and cost ($2b$<rounds>$...), so nothing
besides the hash needs to be stored.

verify() never raises: a malformed or truncated stored hash is a mismatch.
"""

from __future__ import annotations

import bcrypt

# bcrypt only looks at the first 72 bytes of its input. Registration rejects
# anything longer so two passwords sharing a 72-byte prefix never collide.
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Adaptive salted hash with a fixed work factor.

    The dummy hash is computed once at construction. verify_dummy() runs a
    full bcrypt check against it so a login for an unknown handle costs the
    same as a login with a wrong password.
    """

    def __init__(self, rounds: int = 12) -> None:
        if rounds < 10:
            raise ValueError("bcrypt cost must be at least 10")
        self.rounds = rounds
        self._dummy_hash = self.hash("tokengate_timing_dummy")

    def hash(self, plaintext: str) -> str:
        """Return a bcrypt hash of plaintext.

        Callers must reject inputs over MAX_PASSWORD_BYTES first; bcrypt 4.1+
        raises ValueError on them.
        """
        return bcrypt.hashpw(plaintext.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, hashed: str, plaintext: str) -> bool:
        """Return True if plaintext matches hashed. False on any malformed input."""
        try:
            return bcrypt.checkpw(plaintext.encode("utf-8"), hashed.encode("utf-8"))
        except (ValueError, TypeError):
            return False

    def verify_dummy(self, plaintext: str) -> None:
        self.verify(self._dummy_hash, plaintext)
