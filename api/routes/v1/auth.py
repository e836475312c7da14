"""
api/routes/v1/auth.py -- Registration, login, session and token endpoints.

Routes:
  POST /api/v1/auth/register  -- create an account (no tokens issued)
  POST /api/v1/auth/login     -- password login; tokens via the configured transport
  POST /api/v1/auth/refresh   -- exchange a refresh token for a new pair
  POST /api/v1/auth/logout    -- clear credentials; always 200
  GET  /api/v1/auth/me        -- current user (requires access token)
  GET  /api/v1/auth/verify    -- confirm the access token is still good
  GET  /api/v1/auth/session   -- optional auth; reports anonymous or the user

Every route here sits behind enforce_rate_limit (attached when the router is
included in api/main.py).

Security:
  [C1] login() goes through AuthService.login(), which equalizes timing and
       returns one error for unknown email and wrong password.
  [M5] Cache-Control: no-store on every response that carries or clears
       token material.
  Refresh failures always clear stored credentials so a browser does not
  keep retrying with a dead refresh cookie.

Blocking handlers (bcrypt, SQLite) are plain def so FastAPI runs them in its
threadpool instead of stalling the event loop.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import (
    CredentialsRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    RefreshRequest,
    RefreshResponse,
    RegisterResponse,
    SessionResponse,
    UserResponse,
    VerifyResponse,
)
from auth.dependencies import GateCode, get_current_user, get_optional_user
from auth.errors import AuthError, ErrorKind
from auth.models import User
from auth.service import AuthService
from auth.transport import TokenTransport

logger = logging.getLogger("authgate.api")

# Auth policy:
# - POST /auth/register, /auth/login, /auth/refresh, /auth/logout: public
# - GET  /auth/session: optional auth (get_optional_user)
# - GET  /auth/me, /auth/verify: requires auth (get_current_user)
router = APIRouter()


def _no_store(resp: JSONResponse) -> JSONResponse:
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


def _session_ended(transport: TokenTransport, code: GateCode, message: str) -> JSONResponse:
    resp = JSONResponse(status_code=401, content={"error": {"code": code.value, "message": message}})
    transport.clear(resp)
    return _no_store(resp)


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
def register(request: Request, body: CredentialsRequest) -> JSONResponse:
    """Create an account. The client must log in afterwards to get tokens.

    A duplicate email comes back as a 400 validation error on the email
    field (code "email_exists") so forms can show it inline.
    """
    service: AuthService = request.app.state.auth_service
    user = service.register(body.email, body.password)
    return JSONResponse(
        status_code=201,
        content=RegisterResponse(
            message="Account created successfully! You can now log in with your credentials.",
            user=UserResponse.from_user(user),
        ).model_dump(),
    )


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: CredentialsRequest) -> JSONResponse:
    """Authenticate with email and password; deliver a fresh token pair.

    Cookie transport: tokens are set as httpOnly cookies and the body holds
    only the user. Bearer transport: tokens are in the body as well.
    """
    service: AuthService = request.app.state.auth_service
    transport: TokenTransport = request.app.state.transport

    result = service.login(body.email, body.password)
    resp = JSONResponse(
        content=LoginResponse(
            message="Login successful",
            user=UserResponse.from_user(result.user),
            **transport.payload(result.tokens),
        ).model_dump(exclude_none=True),
    )
    transport.attach(resp, result.tokens)
    return _no_store(resp)


@router.post("/auth/refresh", response_model=RefreshResponse)
def refresh(request: Request, body: Optional[RefreshRequest] = None) -> JSONResponse:
    """Issue a new access token (and a rotated refresh token when enabled).

    The refresh token is read from the refreshToken cookie, falling back to
    {"refresh_token": ...} in the body. Any verification failure answers 401
    and clears both cookies.
    """
    service: AuthService = request.app.state.auth_service
    transport: TokenTransport = request.app.state.transport
    rotate: bool = request.app.state.settings.rotate_refresh_tokens

    token = transport.extract_refresh(request, body.refresh_token if body else None)
    if not token:
        return _session_ended(transport, GateCode.NO_TOKEN, "Refresh token not found")

    try:
        _user, pair = service.refresh(token)
    except AuthError as exc:
        if not exc.is_token_failure:
            raise
        logger.info("Refresh rejected (%s); clearing credentials", exc.code)
        code = GateCode.TOKEN_EXPIRED if exc.kind is ErrorKind.TOKEN_EXPIRED else GateCode.INVALID_TOKEN
        return _session_ended(transport, code, "Session expired. Please login again.")

    resp = JSONResponse(
        content=RefreshResponse(
            message="Token refreshed successfully",
            **transport.payload(pair, include_refresh=rotate),
        ).model_dump(exclude_none=True),
    )
    transport.attach(resp, pair, include_refresh=rotate)
    return _no_store(resp)


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """Clear the client's credentials. Always 200.

    There is no server-side session; a failing cleanup step is logged and
    the cookies are cleared regardless.
    """
    transport: TokenTransport = request.app.state.transport
    try:
        request.app.state.auth_service.logout()
    except Exception:
        logger.warning("Logout cleanup failed; clearing credentials anyway", exc_info=True)
    resp = JSONResponse(content=MessageResponse(message="Logged out successfully").model_dump())
    transport.clear(resp)
    return _no_store(resp)


@router.get("/auth/session", response_model=SessionResponse)
def session(current_user: Optional[User] = Depends(get_optional_user)) -> SessionResponse:
    """Report who is calling without ever rejecting the request."""
    if current_user is None:
        return SessionResponse(authenticated=False, user=None)
    return SessionResponse(authenticated=True, user=UserResponse.from_user(current_user))


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
def me(current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return the currently authenticated user."""
    return MeResponse(user=UserResponse.from_user(current_user))


@router.get("/auth/verify", response_model=VerifyResponse)
def verify(current_user: User = Depends(get_current_user)) -> VerifyResponse:
    """Reaching the handler means the gate accepted the token."""
    return VerifyResponse(valid=True, user=UserResponse.from_user(current_user))
