"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores, services and
routes do the work; these define shape only.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class TokenKind(str, Enum):
    access = "access"
    refresh = "refresh"


@dataclass
class User:
    """A registered identity.

    email is always stored in normalized form (trimmed, lower-cased); it is the
    uniqueness key. password_hash is a bcrypt string and must never leave the
    process -- use to_public() for anything serialized outward.
    """

    email: str
    password_hash: str
    id: int | None = None
    created_at: str | None = None

    def to_public(self) -> dict:
        return {"id": self.id, "email": self.email, "created_at": self.created_at}


@dataclass(frozen=True)
class TokenPair:
    """Access + refresh tokens minted together. Never issued one without the other."""

    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a token."""

    subject_id: int
    subject_email: str
    kind: TokenKind
    expires_at: datetime


@dataclass(frozen=True)
class LoginResult:
    user: User
    tokens: TokenPair
