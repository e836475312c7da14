"""
api/main.py -- FastAPI application factory for AuthGate.

Run with:      python main.py serve
               uvicorn asgi:app --reload

create_app(settings) builds a fresh application. Nothing is constructed at
import time: the store, hasher, token issuer, service, transport and rate
limiter are all created in the lifespan from the Settings passed in, placed
on app.state, and torn down on shutdown. Tests build their own app with their
own Settings; two apps in one process share no state.

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- CORS for the configured frontend origins, with
                              credentials so auth cookies cross origins
  3. log_requests          -- one INFO line per request

Rate limiting is a router dependency (api.limiter.enforce_rate_limit) on the
/auth routes only; /health is never throttled.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import RequestRateLimiter, enforce_rate_limit
from api.models import ErrorDetail, ErrorResponse, FieldErrorModel, HealthResponse
from api.routes.v1.admin import router as admin_router
from api.routes.v1.auth import router as auth_router
from auth.errors import AuthError, ErrorKind
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenIssuer
from auth.transport import CookiePolicy, TokenTransport
from core.config import Settings

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authgate.api")


# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def build_auth_service(settings: Settings, user_store: UserStore) -> AuthService:
    """Assemble the service from settings. Shared by the app lifespan and the CLI."""
    return AuthService(
        store=user_store,
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        tokens=TokenIssuer(
            access_secret=settings.access_token_secret,
            refresh_secret=settings.refresh_token_secret,
            access_ttl=timedelta(seconds=settings.access_token_expire_seconds),
            refresh_ttl=timedelta(seconds=settings.refresh_token_expire_seconds),
        ),
    )


def build_transport(settings: Settings) -> TokenTransport:
    return TokenTransport(
        mode=settings.token_transport,
        policy=CookiePolicy(
            secure=bool(settings.secure_cookies),
            samesite=settings.cookie_samesite or "lax",
            path=settings.cookie_path,
            domain=settings.effective_cookie_domain,
        ),
        access_max_age=settings.access_token_expire_seconds,
        refresh_max_age=settings.refresh_token_expire_seconds,
    )


def _make_lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Create every stateful component on startup; release them on shutdown."""
        logger.info("AuthGate API starting up (environment=%s)", settings.environment)
        user_store = UserStore(settings.database_url)
        app.state.user_store = user_store
        app.state.auth_service = build_auth_service(settings, user_store)
        app.state.transport = build_transport(settings)
        app.state.rate_limiter = RequestRateLimiter(
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )
        logger.info(
            "Auth initialized (transport=%s, rate_limit=%d/%ds)",
            settings.token_transport,
            settings.rate_limit_max_requests,
            settings.rate_limit_window_seconds,
        )

        yield

        app.state.rate_limiter.reset()
        user_store.close()
        logger.info("AuthGate API shutdown complete")

    return lifespan


# ---------------------------------------------------------------------------
# Error bodies
# ---------------------------------------------------------------------------


def _error_body(code: str, message: str, **extra) -> dict:
    return ErrorResponse(error=ErrorDetail(code=code, message=message, **extra)).model_dump(exclude_none=True)


def _auth_error_response(exc: AuthError, settings: Settings) -> JSONResponse:
    """Map a tagged AuthError to its HTTP status and body.

    INTERNAL is the only kind whose message is replaced: clients see an
    opaque message, and the original text only in debug mode.
    """
    if exc.kind is ErrorKind.INTERNAL:
        content = _error_body(
            "internal_error",
            "An unexpected error occurred.",
            detail=exc.message if settings.debug else None,
        )
    else:
        errors = [FieldErrorModel.from_field_error(f) for f in exc.fields] or None
        content = _error_body(exc.code, exc.message, errors=errors)
    resp = JSONResponse(status_code=exc.status_code, content=content)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    if settings is None:
        from core.config import get_settings

        settings = get_settings()

    app = FastAPI(
        title="AuthGate API",
        description="Credential authentication: registration, login, token refresh and verification.",
        version=settings.app_version,
        lifespan=_make_lifespan(settings),
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
    )
    app.state.settings = settings

    # -----------------------------------------------------------------------
    # Middleware stack
    #
    # add_middleware() wraps the existing stack, so the last one added is the
    # outermost. Register innermost first: CORS, then TrustedHost.
    # -----------------------------------------------------------------------

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
        max_age=3600,
    )
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_host_list)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s %d %.1fms %s",
            request.method,
            request.url.path,
            response.status_code,
            ms,
            request.client.host if request.client else "unknown",
        )
        return response

    # -----------------------------------------------------------------------
    # Routers
    # -----------------------------------------------------------------------

    app.include_router(
        auth_router,
        prefix="/api/v1",
        tags=["Auth"],
        dependencies=[Depends(enforce_rate_limit)],
    )
    app.include_router(admin_router, prefix="/api/v1", tags=["Admin"])

    # -----------------------------------------------------------------------
    # Exception handlers
    #
    # Every handler returns the same {"error": {...}} envelope so clients can
    # parse failures without choosing a schema by status code.
    # -----------------------------------------------------------------------

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
        """Expected outcomes (validation, bad credentials, tokens) are not errors
        from the server's point of view and are logged at DEBUG only."""
        if exc.kind is ErrorKind.INTERNAL:
            logger.error("Internal auth failure on %s %s: %s", request.method, request.url.path, exc.message)
        else:
            logger.debug("%s %s rejected: %s (%s)", request.method, request.url.path, exc.code, exc.kind.value)
        return _auth_error_response(exc, settings)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Return 422 when the body is not the expected JSON shape at all."""
        return JSONResponse(
            status_code=422,
            content=_error_body("request_invalid", "Request validation failed.", detail=str(exc.errors())),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Structured dict details are used as the error object directly;
        str(dict) would produce a Python repr, not JSON."""
        if isinstance(exc.detail, dict):
            content = {"error": exc.detail}
        else:
            content = _error_body(f"http_{exc.status_code}", str(exc.detail))
        return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unexpected server errors.

        The stack trace goes to the log only. The response carries the
        exception text in debug mode and nothing identifying otherwise.
        """
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_error",
                "An unexpected error occurred.",
                detail=str(exc) if settings.debug else None,
            ),
        )

    # -----------------------------------------------------------------------
    # Health endpoint
    #
    # Defined on the app (not a router) and outside the rate limiter so load
    # balancers can poll it freely. Liveness only; no authentication.
    # -----------------------------------------------------------------------

    @app.get("/api/v1/health", tags=["Health"], response_model=HealthResponse)
    def health(request: Request) -> HealthResponse:
        try:
            database = "ok" if request.app.state.user_store.ping() else "error"
        except SQLAlchemyError:
            logger.warning("Health check could not reach the database", exc_info=True)
            database = "error"
        return HealthResponse(
            status="ok",
            environment=settings.environment,
            version=settings.app_version,
            timestamp=datetime.now(timezone.utc).isoformat(),
            components={"app": "ok", "database": database},
        )

    return app
