"""Tests for PBKDF2 password hashing."""

import pytest

from authgate.services.password_hasher import PasswordHasher


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(iterations=1000)


def test_hash_is_self_describing(hasher: PasswordHasher) -> None:
    encoded = hasher.hash("correct horse")
    algorithm, iterations, salt, key = encoded.split("$")

    assert algorithm == "pbkdf2"
    assert iterations == "1000"
    assert len(salt) == 32
    assert len(key) == 64
    int(salt, 16)
    int(key, 16)


def test_same_password_gets_fresh_salt(hasher: PasswordHasher) -> None:
    assert hasher.hash("secret-pass") != hasher.hash("secret-pass")


def test_verify_accepts_correct_password(hasher: PasswordHasher) -> None:
    encoded = hasher.hash("secret-pass")
    assert hasher.verify("secret-pass", encoded) is True


def test_verify_rejects_wrong_password(hasher: PasswordHasher) -> None:
    encoded = hasher.hash("secret-pass")
    assert hasher.verify("Secret-pass", encoded) is False


def test_verify_uses_iterations_recorded_in_hash() -> None:
    encoded = PasswordHasher(iterations=500).hash("secret-pass")
    assert PasswordHasher(iterations=2000).verify("secret-pass", encoded) is True


@pytest.mark.parametrize(
    "encoded",
    [
        "",
        "not-a-hash",
        "pbkdf2$1000$abcd",
        "pbkdf2$1000$abcd$ef$extra",
        "bcrypt$1000$abcd$" + "00" * 32,
        "pbkdf2$abc$abcd$" + "00" * 32,
        "pbkdf2$0$abcd$" + "00" * 32,
        "pbkdf2$-5$abcd$" + "00" * 32,
        "pbkdf2$1000$abcd$not-hex",
        "pbkdf2$1000$$" + "00" * 32,
        "pbkdf2$1000$abcd$00ff",
    ],
)
def test_verify_returns_false_for_malformed_hashes(hasher: PasswordHasher, encoded: str) -> None:
    assert hasher.verify("secret-pass", encoded) is False


def test_verify_rejects_non_string(hasher: PasswordHasher) -> None:
    assert hasher.verify("secret-pass", None) is False  # type: ignore[arg-type]


def test_rejects_non_positive_iterations() -> None:
    with pytest.raises(ValueError):
        PasswordHasher(iterations=0)
