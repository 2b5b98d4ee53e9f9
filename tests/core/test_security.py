"""Tests for password hashing and JWT helpers."""

from portal.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)


class TestPasswordHashing:
    def test_hash_is_not_plaintext(self):
        hashed = hash_password("correct-horse-battery")
        assert hashed != "correct-horse-battery"
        assert hashed.startswith("$2")

    def test_verify_password(self):
        hashed = hash_password("correct-horse-battery")
        assert verify_password("correct-horse-battery", hashed)
        assert not verify_password("wrong-password", hashed)

    def test_malformed_hash_does_not_verify(self):
        assert not verify_password("anything", "not-a-real-hash")


class TestJwt:
    def test_access_token_round_trip(self):
        token = create_access_token("account-1", additional_claims={"role": "registrar"})

        payload = decode_token(token)

        assert payload["sub"] == "account-1"
        assert payload["type"] == "access"
        assert payload["role"] == "registrar"

    def test_refresh_token_type(self):
        payload = decode_token(create_refresh_token("account-1"))
        assert payload["type"] == "refresh"

    def test_tampered_token_is_rejected(self):
        header, _, signature = create_access_token("account-1").split(".")
        _, forged_payload, _ = create_access_token("account-2").split(".")

        assert decode_token(f"{header}.{forged_payload}.{signature}") is None

    def test_garbage_is_rejected(self):
        assert decode_token("not-a-jwt") is None
