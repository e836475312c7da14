"""
auth/service.py -- Registration, login, token verification and refresh.

AuthService is the only place that combines the store, the hasher and the
token issuer. Each public method either returns a complete result or raises
an AuthError; none leaves a partial side effect behind (a failed register
writes nothing, a failed login issues nothing).

User enumeration [C1]:
  login() answers "unknown email" and "wrong password" with the same
  AuthError (same kind, code and message) and runs bcrypt in both branches,
  so neither the body nor the response time reveals which emails exist.

Revocation by deletion:
  verify_access()/verify_refresh() re-read the subject from the store on
  every call. Tokens carry no revocation list, but deleting the user makes
  every outstanding token for it fail with "User not found".

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from auth.errors import AuthError, ErrorKind, FieldError, validation_error
from auth.models import LoginResult, TokenKind, TokenPair, User
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import TokenIssuer
from auth.validation import normalize_email, validate_login, validate_registration

logger = logging.getLogger("authgate.auth")

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password."


def _invalid_credentials() -> AuthError:
    return AuthError(ErrorKind.AUTHENTICATION, INVALID_CREDENTIALS_MESSAGE, code="invalid_credentials")


def _user_not_found() -> AuthError:
    return AuthError(ErrorKind.AUTHENTICATION, "User not found", code="user_not_found")


def _store_failure(exc: SQLAlchemyError, operation: str) -> AuthError:
    logger.exception("Credential store failure during %s", operation)
    return AuthError(ErrorKind.INTERNAL, f"{operation.capitalize()} failed. Please try again.", code="store_error")


@dataclass
class AuthService:
    store: UserStore
    hasher: PasswordHasher
    tokens: TokenIssuer

    # ------------------------------------------------------------------
    # Registration / login
    # ------------------------------------------------------------------

    def register(self, email: str, password: str) -> User:
        """Create an account. Does not issue tokens; the client logs in next."""
        errors = validate_registration(email, password)
        if errors:
            raise validation_error(errors)

        normalized = normalize_email(email)
        password_hash = self.hasher.hash(password)
        try:
            user = self.store.create_user(normalized, password_hash)
        except AuthError as exc:
            if exc.kind is not ErrorKind.DUPLICATE:
                raise
            raise validation_error(
                [FieldError("email", "An account with this email already exists")],
                message="Registration failed.",
                code="email_exists",
            ) from exc
        except SQLAlchemyError as exc:
            raise _store_failure(exc, "registration") from exc

        logger.info("Registered user id=%s", user.id)
        return user

    def login(self, email: str, password: str) -> LoginResult:
        errors = validate_login(email, password)
        if errors:
            raise validation_error(errors)

        normalized = normalize_email(email)
        try:
            user = self.store.get_by_email(normalized)
        except SQLAlchemyError as exc:
            raise _store_failure(exc, "login") from exc

        if user is None:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            self.hasher.burn(password)
            raise _invalid_credentials()
        if not self.hasher.verify(password, user.password_hash):
            raise _invalid_credentials()

        return LoginResult(user=user, tokens=self.tokens.issue_pair(user.id, user.email))

    # ------------------------------------------------------------------
    # Token verification
    # ------------------------------------------------------------------

    def _resolve(self, token: str, kind: TokenKind) -> User:
        claims = self.tokens.verify(token, kind)
        try:
            user = self.store.get_by_id(claims.subject_id)
        except SQLAlchemyError as exc:
            raise _store_failure(exc, "token verification") from exc
        if user is None:
            raise _user_not_found()
        return user

    def verify_access(self, token: str) -> User:
        """Return the user behind a valid access token.

        Raises AuthError with kind TOKEN_EXPIRED, TOKEN_INVALID, or
        AUTHENTICATION (user_not_found).
        """
        return self._resolve(token, TokenKind.access)

    def verify_refresh(self, token: str) -> User:
        return self._resolve(token, TokenKind.refresh)

    def refresh(self, refresh_token: str) -> tuple[User, TokenPair]:
        """Exchange a valid refresh token for a brand-new pair.

        Verification failures propagate unchanged; the HTTP layer is
        responsible for clearing the client's stored credentials.
        """
        user = self.verify_refresh(refresh_token)
        return user, self.tokens.issue_pair(user.id, user.email)

    # ------------------------------------------------------------------
    # Misc
    # ------------------------------------------------------------------

    def get_profile(self, user_id: int) -> User:
        try:
            user = self.store.get_by_id(user_id)
        except SQLAlchemyError as exc:
            raise _store_failure(exc, "profile lookup") from exc
        if user is None:
            raise _user_not_found()
        return user

    def logout(self) -> None:
        """No server-side session exists; the transport discards the tokens."""
        return None
