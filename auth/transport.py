"""
auth/transport.py -- How tokens travel between client and server.

TokenTransport holds one of two policies (Settings.token_transport):

  "cookie"  (default) -- tokens are written as httpOnly cookies
                   (accessToken / refreshToken). JS cannot read them (XSS
                   mitigation) and the JSON body carries no token material.

  "bearer"  -- tokens are returned in the JSON body and the client
                   sends "Authorization: Bearer <access token>". For
                   non-browser clients and cross-origin setups where
                   third-party cookies are blocked.

Reading is lenient in both policies: the access token is taken from the
cookie first, then the Bearer header; the refresh token from the cookie
first, then the request body. Only delivery differs.

clear() always expires both cookies, even in bearer mode, so a client
that switched modes never keeps a stale credential.

Layer rule: no imports from api/ or core/. Cookie attributes come from
CookiePolicy, which the app builds from Settings.
"""

from __future__ import annotations

from dataclasses import dataclass

from starlette.requests import Request
from starlette.responses import Response

from auth.models import TokenPair

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


@dataclass(frozen=True)
class CookiePolicy:
    secure: bool = False
    samesite: str = "lax"
    path: str = "/"
    domain: str | None = None


def bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return value.strip() or None


def _cookie(request: Request, name: str) -> str | None:
    return request.cookies.get(name) or None


TRANSPORT_MODES = ("cookie", "bearer")


@dataclass
class TokenTransport:
    mode: str
    policy: CookiePolicy
    access_max_age: int
    refresh_max_age: int

    def __post_init__(self) -> None:
        if self.mode not in TRANSPORT_MODES:
            raise ValueError(f"Unknown token transport: {self.mode!r}")

    @property
    def uses_cookies(self) -> bool:
        return self.mode == "cookie"

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def extract_access(self, request: Request) -> str | None:
        if self.uses_cookies:
            return _cookie(request, ACCESS_COOKIE) or bearer_token(request)
        return bearer_token(request) or _cookie(request, ACCESS_COOKIE)

    def extract_refresh(self, request: Request, body_token: str | None = None) -> str | None:
        return _cookie(request, REFRESH_COOKIE) or body_token or None

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def payload(self, pair: TokenPair, include_refresh: bool = True) -> dict:
        """Token fields to merge into the JSON body. Empty in cookie mode."""
        if self.uses_cookies:
            return {}
        body = {
            "access_token": pair.access_token,
            "token_type": "bearer",
            "expires_in": self.access_max_age,
        }
        if include_refresh:
            body["refresh_token"] = pair.refresh_token
            body["refresh_expires_in"] = self.refresh_max_age
        return body

    def attach(self, response: Response, pair: TokenPair, include_refresh: bool = True) -> None:
        """Write the tokens as cookies whose max_age matches the token lifetime."""
        if not self.uses_cookies:
            return
        self._set(response, ACCESS_COOKIE, pair.access_token, self.access_max_age)
        if include_refresh:
            self._set(response, REFRESH_COOKIE, pair.refresh_token, self.refresh_max_age)

    def clear(self, response: Response) -> None:
        for name in (ACCESS_COOKIE, REFRESH_COOKIE):
            response.delete_cookie(
                name,
                path=self.policy.path,
                domain=self.policy.domain,
                secure=self.policy.secure,
                httponly=True,
                samesite=self.policy.samesite,
            )

    def _set(self, response: Response, name: str, value: str, max_age: int) -> None:
        response.set_cookie(
            name,
            value=value,
            max_age=max_age,
            path=self.policy.path,
            domain=self.policy.domain,
            secure=self.policy.secure,
            httponly=True,
            samesite=self.policy.samesite,
        )
