"""
auth/dependencies.py -- FastAPI Depends() helpers: the request gate.

evaluate_access() is the per-request state machine:

  no token                       -> anonymous, code NO_TOKEN
  token, valid, user exists      -> authenticated(user)
  token, authentic but expired   -> anonymous, code TOKEN_EXPIRED
  token, invalid / user vanished -> anonymous, code INVALID_TOKEN

TOKEN_EXPIRED is kept apart from INVALID_TOKEN so a client knows a call to
/auth/refresh is worth trying; after INVALID_TOKEN it should log in again.

Three dependencies sit on top of it:
  get_optional_user()  never rejects; any failure yields None.
  get_current_user()   raises 401 carrying the state's code.
  require_elevated()   get_current_user(), then 403 FORBIDDEN unless the
                       user's email is on Settings.admin_emails.

Internal failures (AuthError INTERNAL, e.g. the store is down) are not
token outcomes. They propagate to the 500 handler from every variant except
get_optional_user(), which logs them and degrades to anonymous.

Layer rule: no imports from api/. The service, transport and settings are
read from request.app.state, where the application lifespan put them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from fastapi import HTTPException, Request

from auth.errors import AuthError, ErrorKind
from auth.models import User

logger = logging.getLogger("authgate.auth")


class GateCode(str, Enum):
    NO_TOKEN = "NO_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    FORBIDDEN = "FORBIDDEN"


_GATE_MESSAGES: dict[GateCode, str] = {
    GateCode.NO_TOKEN: "Access token required",
    GateCode.TOKEN_EXPIRED: "Access token expired",
    GateCode.INVALID_TOKEN: "Invalid access token",
    GateCode.FORBIDDEN: "Admin access required",
}


@dataclass(frozen=True)
class GateResult:
    user: User | None
    code: GateCode | None = None

    @property
    def authenticated(self) -> bool:
        return self.user is not None


def evaluate_access(request: Request) -> GateResult:
    """Classify the request's access credential. Raises only for internal errors."""
    transport = request.app.state.transport
    service = request.app.state.auth_service

    token = transport.extract_access(request)
    if not token:
        return GateResult(user=None, code=GateCode.NO_TOKEN)

    try:
        user = service.verify_access(token)
    except AuthError as exc:
        if exc.kind is ErrorKind.TOKEN_EXPIRED:
            return GateResult(user=None, code=GateCode.TOKEN_EXPIRED)
        if exc.is_token_failure:
            return GateResult(user=None, code=GateCode.INVALID_TOKEN)
        raise
    return GateResult(user=user)


def _reject(code: GateCode, status_code: int = 401) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"code": code.value, "message": _GATE_MESSAGES[code]},
    )


def get_optional_user(request: Request) -> User | None:
    """Soft variant: the request proceeds anonymously on any failure."""
    try:
        result = evaluate_access(request)
    except AuthError:
        logger.warning("Optional auth degraded to anonymous after an internal error", exc_info=True)
        return None
    return result.user


def get_current_user(request: Request) -> User:
    """Require a valid access credential.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    result = evaluate_access(request)
    if result.user is None:
        raise _reject(result.code or GateCode.NO_TOKEN)
    return result.user


def require_elevated(request: Request) -> User:
    """Require a valid access credential whose email is on the admin allow-list."""
    user = get_current_user(request)
    if user.email.lower() not in request.app.state.settings.admin_email_set:
        raise _reject(GateCode.FORBIDDEN, status_code=403)
    return user
