"""
auth/errors.py -- Tagged error type for the auth core.

Every expected failure in auth/ is an AuthError carrying an ErrorKind. Callers
branch on exc.kind (and, where needed, exc.code) rather than on exception
subclasses, so the full set of outcomes is visible in one enum:

  VALIDATION      client input malformed; fields lists every violation
  AUTHENTICATION  bad credentials or the token's subject no longer exists
  TOKEN_EXPIRED   signature valid, clock past exp -- refresh may succeed
  TOKEN_INVALID   signature/format/kind failure -- refresh will not help
  DUPLICATE       store-level uniqueness conflict on email
  INTERNAL        store, hashing or signing failure not caused by the caller

The HTTP status for each kind lives in STATUS_BY_KIND so the API layer and
tests agree on one mapping.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_INVALID = "token_invalid"
    DUPLICATE = "duplicate"
    INTERNAL = "internal"


STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.TOKEN_EXPIRED: 401,
    ErrorKind.TOKEN_INVALID: 401,
    ErrorKind.DUPLICATE: 409,
    ErrorKind.INTERNAL: 500,
}

_DEFAULT_CODES: dict[ErrorKind, str] = {
    ErrorKind.VALIDATION: "validation_error",
    ErrorKind.AUTHENTICATION: "authentication_failed",
    ErrorKind.TOKEN_EXPIRED: "token_expired",
    ErrorKind.TOKEN_INVALID: "invalid_token",
    ErrorKind.DUPLICATE: "duplicate",
    ErrorKind.INTERNAL: "internal_error",
}


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


@dataclass(eq=False)
class AuthError(Exception):
    kind: ErrorKind
    message: str
    code: str = ""
    fields: list[FieldError] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.code:
            self.code = _DEFAULT_CODES[self.kind]
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    @property
    def is_token_failure(self) -> bool:
        """True for outcomes that end a session: expired, invalid, or vanished subject."""
        return self.kind in (ErrorKind.TOKEN_EXPIRED, ErrorKind.TOKEN_INVALID, ErrorKind.AUTHENTICATION)


def validation_error(fields: list[FieldError], message: str = "Validation failed.", code: str = "") -> AuthError:
    return AuthError(ErrorKind.VALIDATION, message, code=code, fields=list(fields))
