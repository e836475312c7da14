"""
tests/conftest.py -- Shared test fixtures for AuthGate.

This module provides:
  - make_settings(): debug Settings with fixed secrets and a per-test DB file
  - store / hasher / issuer / service: unit-level components
  - client: TestClient over create_app() in cookie transport mode
  - bearer_client: same app wired for bearer transport
  - register_and_login(): helper that drives the public endpoints

Design: every test gets its own SQLite file under tmp_path. A file (not
:memory:) is used because TestClient runs sync handlers in a thread pool
and the concurrency tests open several connections at once; a file DB with
WAL gives every connection the same schema and real write locking.

The TestClient is always used as a context manager so the app lifespan
runs and app.state is populated exactly as in production.

bcrypt_rounds=4 keeps hashing fast; the cost factor does not change any
behaviour under test.
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from datetime import datetime, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from api.main import build_auth_service, create_app
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.config import Settings

ACCESS_SECRET = "test-access-secret-0123456789abcdefghijklmnop"
REFRESH_SECRET = "test-refresh-secret-9876543210zyxwvutsrqponml"
ADMIN_EMAIL = "admin@test.com"
PASSWORD = "secret1"

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def make_settings(tmp_path: Path, **overrides) -> Settings:
    """Build debug Settings isolated to tmp_path. Keyword args override fields."""
    values: dict = {
        "debug": True,
        "database_url": f"sqlite:///{tmp_path / 'authgate_test.db'}",
        "access_token_secret": ACCESS_SECRET,
        "refresh_token_secret": REFRESH_SECRET,
        "bcrypt_rounds": 4,
        "admin_emails": ADMIN_EMAIL,
        "rate_limit_max_requests": 1000,
    }
    values.update(overrides)
    return Settings(**values)


def past_clock(seconds_ago: int) -> Callable[[], datetime]:
    """Clock for TokenIssuer that mints tokens as if issued seconds_ago."""
    issued = datetime.fromtimestamp(datetime.now(timezone.utc).timestamp() - seconds_ago, tz=timezone.utc)
    return lambda: issued


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


# ---------------------------------------------------------------------------
# Unit-level components
# ---------------------------------------------------------------------------


@pytest.fixture()
def store(settings: Settings) -> Generator[UserStore, None, None]:
    user_store = UserStore(settings.database_url)
    yield user_store
    user_store.close()


@pytest.fixture()
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture()
def issuer() -> TokenIssuer:
    return TokenIssuer(access_secret=ACCESS_SECRET, refresh_secret=REFRESH_SECRET)


@pytest.fixture()
def service(settings: Settings, store: UserStore) -> AuthService:
    return build_auth_service(settings, store)


# ---------------------------------------------------------------------------
# HTTP clients
# ---------------------------------------------------------------------------


@pytest.fixture()
def client(settings: Settings) -> Generator[TestClient, None, None]:
    """TestClient in cookie transport mode. Cookies persist on client.cookies."""
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture()
def bearer_client(tmp_path: Path) -> Generator[TestClient, None, None]:
    """TestClient whose app delivers tokens in response bodies."""
    with TestClient(create_app(make_settings(tmp_path, token_transport="bearer"))) as test_client:
        yield test_client


def register_and_login(client: TestClient, email: str = "user@test.com", password: str = PASSWORD) -> dict:
    """Register then log in through the API; return the login response body."""
    resp = client.post("/api/v1/auth/register", json={"email": email, "password": password})
    assert resp.status_code == 201, resp.text
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()
