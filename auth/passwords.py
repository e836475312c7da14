"""
auth/passwords.py -- bcrypt password hashing.

bcrypt is used directly rather than through passlib: passlib's wrap-bug
detection builds a password longer than 72 bytes, which bcrypt 4.x rejects.

bcrypt only reads the first 72 bytes of its input, and bcrypt 5 raises on
anything longer. Passwords are therefore UTF-8 encoded and cut to 72 bytes
in both hash() and verify(), so the two always agree on what was hashed.

The work factor comes from Settings.bcrypt_rounds. Each increment doubles the
cost of every login and of every offline guess against a leaked hash.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import bcrypt

from auth.errors import AuthError, ErrorKind

logger = logging.getLogger("authgate.auth")

_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


@dataclass
class PasswordHasher:
    rounds: int = 12
    _dummy_hash: str = field(init=False, repr=False)

    def __post_init__(self) -> None:
        # Built once up front so the first unknown-email login costs one verify,
        # like every later one [C1].
        self._dummy_hash = self.hash("authgate_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a salted bcrypt hash. A new salt is drawn on every call."""
        try:
            return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")
        except (ValueError, TypeError) as exc:
            logger.exception("Password hashing failed")
            raise AuthError(ErrorKind.INTERNAL, "Password hashing failed.", code="hashing_failed") from exc

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if plain matches hashed.

        bcrypt.checkpw compares in constant time. A malformed or empty hash is
        a verification failure, not an error.
        """
        if not plain or not hashed:
            return False
        try:
            return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
        except (ValueError, TypeError):
            return False

    def burn(self, plain: str) -> None:
        """Spend one verification's worth of CPU without a real hash.

        Called when a login names an unknown email so the response takes as
        long as a wrong-password response for a real account.
        """
        self.verify(plain or "x", self._dummy_hash)
