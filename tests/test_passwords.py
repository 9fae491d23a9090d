"""Unit tests for auth/passwords.py -- bcrypt hashing and verification."""

from __future__ import annotations

import pytest

from auth.errors import CorruptCredential
from auth.passwords import DUMMY_HASH, hash_password, verify_password


def test_hash_is_salted_per_call() -> None:
    assert hash_password("Abcdef1") != hash_password("Abcdef1")


def test_verify_accepts_matching_password() -> None:
    assert verify_password("Abcdef1", hash_password("Abcdef1")) is True


def test_verify_rejects_wrong_password_without_raising() -> None:
    assert verify_password("Abcdef2", hash_password("Abcdef1")) is False


def test_hash_is_not_the_plaintext() -> None:
    digest = hash_password("Abcdef1")
    assert "Abcdef1" not in digest
    assert digest.startswith("$2")


@pytest.mark.parametrize("digest", ["", "plaintext-password", "$2b$12$short"])
def test_malformed_digest_raises_corrupt_credential(digest: str) -> None:
    with pytest.raises(CorruptCredential):
        verify_password("Abcdef1", digest)


def test_dummy_hash_is_a_real_bcrypt_digest() -> None:
    assert verify_password("anything", DUMMY_HASH) is False
