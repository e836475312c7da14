"""
tests/test_passwords.py -- PasswordHasher (bcrypt) behaviour.

Covers:
  - Hashes are salted: same password, different hash, both verify
  - Cost factor from the constructor is encoded in the hash
  - Wrong, empty and malformed inputs verify False without raising
  - Inputs longer than bcrypt's 72-byte window hash and verify consistently
  - The timing dummy hash exists from construction; burn() never hashes
"""

from __future__ import annotations

import bcrypt
import pytest

from auth.passwords import PasswordHasher


def test_hash_is_salted(hasher: PasswordHasher) -> None:
    first = hasher.hash("secret1")
    second = hasher.hash("secret1")
    assert first != second
    assert hasher.verify("secret1", first)
    assert hasher.verify("secret1", second)


def test_hash_never_contains_plaintext(hasher: PasswordHasher) -> None:
    assert "secret1" not in hasher.hash("secret1")


def test_rounds_recorded_in_hash() -> None:
    assert PasswordHasher(rounds=5).hash("secret1").startswith("$2b$05$")


def test_wrong_password_fails(hasher: PasswordHasher) -> None:
    assert not hasher.verify("secret2", hasher.hash("secret1"))


def test_empty_inputs_fail(hasher: PasswordHasher) -> None:
    hashed = hasher.hash("secret1")
    assert not hasher.verify("", hashed)
    assert not hasher.verify("secret1", "")


def test_malformed_hash_fails_without_raising(hasher: PasswordHasher) -> None:
    assert not hasher.verify("secret1", "not-a-bcrypt-hash")


def test_long_password_round_trips(hasher: PasswordHasher) -> None:
    long_pw = "p" * 100
    assert hasher.verify(long_pw, hasher.hash(long_pw))


def test_burn_does_not_raise(hasher: PasswordHasher) -> None:
    hasher.burn("anything")
    hasher.burn("")


def test_dummy_hash_built_at_construction() -> None:
    hasher = PasswordHasher(rounds=4)
    assert hasher._dummy_hash.startswith("$2b$04$")


def test_burn_never_hashes(monkeypatch: pytest.MonkeyPatch) -> None:
    hasher = PasswordHasher(rounds=4)
    calls = []
    real_hashpw = bcrypt.hashpw

    def counting_hashpw(*args, **kwargs):
        calls.append(args)
        return real_hashpw(*args, **kwargs)

    monkeypatch.setattr(bcrypt, "hashpw", counting_hashpw)
    hasher.burn("first")
    hasher.burn("second")
    assert calls == []
