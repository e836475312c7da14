"""
auth/tokens.py -- Access/refresh JWT issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. Each token carries sub (user id as a string,
       as RFC 7519 requires), email, type, iat, exp and a random jti so two
       pairs minted in the same second never collide.

  Two secrets: access tokens are signed with ACCESS_TOKEN_SECRET and refresh
       tokens with REFRESH_TOKEN_SECRET. A refresh token presented as an
       access token fails signature verification outright; the type claim
       is checked as well so a misconfigured deployment that reuses one
       secret still cannot confuse the two.

  Expiry: evaluated only at verification time. python-jose verifies the
       signature before the claims, so ExpiredSignatureError always means
       "authentic but stale" -- the case where a refresh is worth trying.

Layer rule: no imports from api/ or core/. Secrets and lifetimes are passed in.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JOSEError, JWTError, jwt

from auth.errors import AuthError, ErrorKind
from auth.models import TokenClaims, TokenKind, TokenPair

_ALGORITHM = "HS256"

_DECODE_OPTIONS = {
    "require_exp": True,
    "require_iat": True,
    "require_sub": True,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TokenIssuer:
    """Mints and checks token pairs.

    clock is only consulted at issuance; tests swap it to mint tokens whose
    exp is already in the past.
    """

    access_secret: str
    refresh_secret: str
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=7)
    clock: Callable[[], datetime] = field(default=_utcnow, repr=False)

    def _secret_for(self, kind: TokenKind) -> str:
        return self.access_secret if kind is TokenKind.access else self.refresh_secret

    def _encode(self, subject_id: int, subject_email: str, kind: TokenKind, issued_at: datetime) -> tuple[str, datetime]:
        ttl = self.access_ttl if kind is TokenKind.access else self.refresh_ttl
        expires_at = issued_at + ttl
        payload = {
            "sub": str(subject_id),
            "email": subject_email,
            "type": kind.value,
            "iat": issued_at,
            "exp": expires_at,
            "jti": secrets.token_urlsafe(12),
        }
        try:
            token = jwt.encode(payload, self._secret_for(kind), algorithm=_ALGORITHM)
        except JOSEError as exc:
            raise AuthError(ErrorKind.INTERNAL, "Token signing failed.", code="signing_failed") from exc
        return token, expires_at

    def issue_pair(self, subject_id: int, subject_email: str) -> TokenPair:
        """Encode both tokens before returning either."""
        issued_at = self.clock()
        access, access_exp = self._encode(subject_id, subject_email, TokenKind.access, issued_at)
        refresh, refresh_exp = self._encode(subject_id, subject_email, TokenKind.refresh, issued_at)
        return TokenPair(
            access_token=access,
            refresh_token=refresh,
            access_expires_at=access_exp,
            refresh_expires_at=refresh_exp,
        )

    def verify(self, token: str, kind: TokenKind) -> TokenClaims:
        """Return the claims of a valid token of the given kind.

        Raises AuthError(TOKEN_EXPIRED) for an authentic token past its exp,
        AuthError(TOKEN_INVALID) for everything else.
        """
        label = kind.value.capitalize()
        if not token or not isinstance(token, str):
            raise AuthError(ErrorKind.TOKEN_INVALID, f"Invalid {kind.value} token")
        try:
            payload = jwt.decode(token, self._secret_for(kind), algorithms=[_ALGORITHM], options=_DECODE_OPTIONS)
        except ExpiredSignatureError as exc:
            raise AuthError(ErrorKind.TOKEN_EXPIRED, f"{label} token expired") from exc
        except JWTError as exc:
            raise AuthError(ErrorKind.TOKEN_INVALID, f"Invalid {kind.value} token") from exc

        if payload.get("type") != kind.value:
            raise AuthError(ErrorKind.TOKEN_INVALID, f"Invalid {kind.value} token")
        email = payload.get("email")
        try:
            subject_id = int(payload["sub"])
        except (KeyError, TypeError, ValueError) as exc:
            raise AuthError(ErrorKind.TOKEN_INVALID, f"Invalid {kind.value} token") from exc
        if not isinstance(email, str) or not email:
            raise AuthError(ErrorKind.TOKEN_INVALID, f"Invalid {kind.value} token")

        return TokenClaims(
            subject_id=subject_id,
            subject_email=email,
            kind=kind,
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
