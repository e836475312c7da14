"""
tests/test_service.py -- AuthService: register, login, verify, refresh.

Covers:
  - Registration normalizes email, hashes the password and issues no tokens
  - Duplicate registration (any case/whitespace) is a VALIDATION error on email
  - Concurrent registration of one address creates exactly one account
  - Unknown email and wrong password fail identically
  - verify_access / verify_refresh resolve the current user; deleted users fail
  - refresh() returns a new verifiable pair; expiry propagates as TOKEN_EXPIRED
  - Store failures surface as INTERNAL, never as credential errors
"""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from auth.errors import AuthError, ErrorKind
from auth.models import TokenKind
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenIssuer
from tests.conftest import ACCESS_SECRET, PASSWORD, REFRESH_SECRET, past_clock


def _raises(kind: ErrorKind, fn, *args) -> AuthError:
    with pytest.raises(AuthError) as exc_info:
        fn(*args)
    assert exc_info.value.kind is kind
    return exc_info.value


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class TestRegister:
    def test_normalizes_and_hashes(self, service: AuthService, store: UserStore) -> None:
        user = service.register("  A@Test.com ", PASSWORD)
        assert user.email == "a@test.com"
        stored = store.get_by_email("a@test.com")
        assert stored is not None
        assert stored.password_hash != PASSWORD
        assert service.hasher.verify(PASSWORD, stored.password_hash)

    def test_public_view_has_no_hash(self, service: AuthService) -> None:
        public = service.register("a@test.com", PASSWORD).to_public()
        assert "password_hash" not in public
        assert public["email"] == "a@test.com"

    def test_invalid_input_lists_fields(self, service: AuthService, store: UserStore) -> None:
        err = _raises(ErrorKind.VALIDATION, service.register, "bad", "x")
        assert {f.field for f in err.fields} == {"email", "password"}
        assert store.count_users() == 0

    def test_duplicate_is_email_field_error(self, service: AuthService) -> None:
        service.register("a@test.com", PASSWORD)
        err = _raises(ErrorKind.VALIDATION, service.register, " A@TEST.com", "another1")
        assert err.code == "email_exists"
        assert [f.field for f in err.fields] == ["email"]

    def test_concurrent_same_email(self, service: AuthService, store: UserStore) -> None:
        workers = 5
        barrier = threading.Barrier(workers)
        outcomes: list[str] = []
        lock = threading.Lock()

        def attempt() -> None:
            barrier.wait()
            try:
                service.register("race@test.com", PASSWORD)
                result = "created"
            except AuthError as exc:
                result = exc.code
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert outcomes.count("created") == 1
        assert outcomes.count("email_exists") == workers - 1
        assert store.count_users() == 1


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


class TestLogin:
    def test_success_returns_user_and_pair(self, service: AuthService) -> None:
        registered = service.register("a@test.com", PASSWORD)
        result = service.login("A@test.com ", PASSWORD)
        assert result.user.id == registered.id
        claims = service.tokens.verify(result.tokens.access_token, TokenKind.access)
        assert claims.subject_id == registered.id

    def test_unknown_email_and_wrong_password_match(self, service: AuthService) -> None:
        service.register("a@test.com", PASSWORD)
        unknown = _raises(ErrorKind.AUTHENTICATION, service.login, "nobody@test.com", PASSWORD)
        wrong = _raises(ErrorKind.AUTHENTICATION, service.login, "a@test.com", "wrong-password")
        assert (unknown.code, unknown.message) == (wrong.code, wrong.message)
        assert unknown.message == "Invalid email or password."

    def test_missing_password_is_validation(self, service: AuthService) -> None:
        err = _raises(ErrorKind.VALIDATION, service.login, "a@test.com", "")
        assert [f.field for f in err.fields] == ["password"]

    def test_unknown_email_still_runs_bcrypt(self, store: UserStore, issuer: TokenIssuer) -> None:
        hasher = MagicMock(spec=PasswordHasher)
        svc = AuthService(store=store, hasher=hasher, tokens=issuer)
        _raises(ErrorKind.AUTHENTICATION, svc.login, "nobody@test.com", PASSWORD)
        hasher.burn.assert_called_once_with(PASSWORD)


# ---------------------------------------------------------------------------
# Verification and refresh
# ---------------------------------------------------------------------------


class TestVerify:
    def test_access_resolves_user(self, service: AuthService) -> None:
        user = service.register("a@test.com", PASSWORD)
        tokens = service.login("a@test.com", PASSWORD).tokens
        assert service.verify_access(tokens.access_token).id == user.id
        assert service.verify_refresh(tokens.refresh_token).id == user.id

    def test_kinds_not_interchangeable(self, service: AuthService) -> None:
        service.register("a@test.com", PASSWORD)
        tokens = service.login("a@test.com", PASSWORD).tokens
        _raises(ErrorKind.TOKEN_INVALID, service.verify_access, tokens.refresh_token)
        _raises(ErrorKind.TOKEN_INVALID, service.verify_refresh, tokens.access_token)

    def test_deleted_user_rejected(self, service: AuthService, store: UserStore) -> None:
        user = service.register("a@test.com", PASSWORD)
        tokens = service.login("a@test.com", PASSWORD).tokens
        store.delete_user(user.id)
        err = _raises(ErrorKind.AUTHENTICATION, service.verify_access, tokens.access_token)
        assert err.code == "user_not_found"
        _raises(ErrorKind.AUTHENTICATION, service.refresh, tokens.refresh_token)

    def test_get_profile(self, service: AuthService) -> None:
        user = service.register("a@test.com", PASSWORD)
        assert service.get_profile(user.id).email == "a@test.com"
        _raises(ErrorKind.AUTHENTICATION, service.get_profile, 9999)


class TestRefresh:
    def test_new_pair_verifies(self, service: AuthService) -> None:
        user = service.register("a@test.com", PASSWORD)
        old = service.login("a@test.com", PASSWORD).tokens
        refreshed_user, pair = service.refresh(old.refresh_token)
        assert refreshed_user.id == user.id
        assert pair.access_token != old.access_token
        assert service.verify_access(pair.access_token).id == user.id

    def test_expired_refresh_token(self, service: AuthService) -> None:
        user = service.register("a@test.com", PASSWORD)
        old_issuer = TokenIssuer(
            access_secret=ACCESS_SECRET, refresh_secret=REFRESH_SECRET, clock=past_clock(8 * 24 * 3600)
        )
        stale = old_issuer.issue_pair(user.id, user.email)
        _raises(ErrorKind.TOKEN_EXPIRED, service.refresh, stale.refresh_token)

    def test_logout_is_noop(self, service: AuthService) -> None:
        assert service.logout() is None


# ---------------------------------------------------------------------------
# Store failures
# ---------------------------------------------------------------------------


class TestStoreFailure:
    @pytest.fixture()
    def broken_service(self, hasher: PasswordHasher, issuer: TokenIssuer) -> AuthService:
        broken = MagicMock(spec=UserStore)
        failure = OperationalError("SELECT", {}, Exception("database is unavailable"))
        broken.get_by_email.side_effect = failure
        broken.get_by_id.side_effect = failure
        broken.create_user.side_effect = failure
        return AuthService(store=broken, hasher=hasher, tokens=issuer)

    def test_login_is_internal(self, broken_service: AuthService) -> None:
        err = _raises(ErrorKind.INTERNAL, broken_service.login, "a@test.com", PASSWORD)
        assert err.code == "store_error"

    def test_register_is_internal(self, broken_service: AuthService) -> None:
        _raises(ErrorKind.INTERNAL, broken_service.register, "a@test.com", PASSWORD)

    def test_verify_is_internal(self, broken_service: AuthService, issuer: TokenIssuer) -> None:
        token = issuer.issue_pair(1, "a@test.com").access_token
        _raises(ErrorKind.INTERNAL, broken_service.verify_access, token)
