"""
tests/test_passwords.py -- Unit tests for auth/passwords.py.

Covers:
  - hash/verify round trip and salting
  - malformed or missing digests verify as False instead of raising
  - passwords longer than bcrypt's 72-byte window
"""

from __future__ import annotations

from auth.passwords import DUMMY_HASH, hash_password, verify_password


class TestHashPassword:
    def test_digest_is_bcrypt_and_not_plaintext(self) -> None:
        digest = hash_password("segredo1")
        assert digest.startswith("$2")
        assert "segredo1" not in digest

    def test_same_password_gets_a_new_salt_each_time(self) -> None:
        assert hash_password("segredo1") != hash_password("segredo1")

    def test_uses_configured_cost_factor(self) -> None:
        # conftest sets BCRYPT_ROUNDS=4
        assert hash_password("segredo1").split("$")[2] == "04"


class TestVerifyPassword:
    def test_correct_password(self) -> None:
        assert verify_password("segredo1", hash_password("segredo1"))

    def test_wrong_password(self) -> None:
        assert not verify_password("segredo2", hash_password("segredo1"))

    def test_missing_digest(self) -> None:
        assert not verify_password("segredo1", None)
        assert not verify_password("segredo1", "")

    def test_malformed_digest_is_a_mismatch(self) -> None:
        assert not verify_password("segredo1", "not-a-bcrypt-digest")

    def test_long_password_does_not_raise(self) -> None:
        long_password = "x" * 200
        assert verify_password(long_password, hash_password(long_password))

    def test_dummy_hash_matches_nothing_a_user_would_type(self) -> None:
        assert not verify_password("senha123", DUMMY_HASH)
