"""
tests/test_tokens.py -- Unit tests for the bearer token codec.

Covers:
  - issue/verify round trip carries subject and purpose
  - purpose isolation in both directions
  - expiry is judged by the injected clock and reported as ExpiredToken
  - tampered, foreign-key and garbage tokens are told apart from expiry
  - missing signing key is refused up front
"""

from __future__ import annotations

import pytest
from jose import jwt

from auth.errors import BadSignature, ExpiredToken, InvalidToken, MalformedToken, SigningKeyMissing, WrongTokenPurpose
from auth.models import TokenPurpose
from auth.tokens import REFRESH_EXPIRE_SECONDS, TokenCodec


class TestIssueAndVerify:
    def test_access_token_resolves_to_subject(self, codec: TokenCodec) -> None:
        token = codec.issue("user-1", TokenPurpose.access)
        claims = codec.verify(token, TokenPurpose.access)
        assert claims.subject_id == "user-1"
        assert claims.purpose is TokenPurpose.access

    def test_access_lifetime_is_configurable(self, codec: TokenCodec, clock) -> None:
        claims = codec.verify(codec.issue("user-1"), TokenPurpose.access)
        assert (claims.expires_at - claims.issued_at).total_seconds() == 3600

    def test_refresh_lifetime_is_thirty_days(self, codec: TokenCodec) -> None:
        claims = codec.verify(codec.issue("user-1", TokenPurpose.refresh), TokenPurpose.refresh)
        assert (claims.expires_at - claims.issued_at).total_seconds() == REFRESH_EXPIRE_SECONDS


class TestPurposeIsolation:
    def test_refresh_token_rejected_as_access(self, codec: TokenCodec) -> None:
        token = codec.issue("user-1", TokenPurpose.refresh)
        with pytest.raises(WrongTokenPurpose):
            codec.verify(token, TokenPurpose.access)

    def test_access_token_rejected_as_refresh(self, codec: TokenCodec) -> None:
        token = codec.issue("user-1", TokenPurpose.access)
        with pytest.raises(WrongTokenPurpose):
            codec.verify(token, TokenPurpose.refresh)

    def test_wrong_purpose_is_an_invalid_token(self) -> None:
        assert issubclass(WrongTokenPurpose, InvalidToken)


class TestExpiry:
    def test_token_valid_until_expiry(self, codec: TokenCodec, clock) -> None:
        token = codec.issue("user-1")
        clock.advance(seconds=3599)
        assert codec.verify(token, TokenPurpose.access).subject_id == "user-1"

    def test_token_expired_at_expiry(self, codec: TokenCodec, clock) -> None:
        token = codec.issue("user-1")
        clock.advance(seconds=3600)
        with pytest.raises(ExpiredToken):
            codec.verify(token, TokenPurpose.access)

    def test_expired_is_not_an_invalid_token(self) -> None:
        """Callers distinguish 'log in again' from 'rejected outright'."""
        assert not issubclass(ExpiredToken, InvalidToken)


class TestRejection:
    def test_garbage_is_malformed(self, codec: TokenCodec) -> None:
        with pytest.raises(MalformedToken):
            codec.verify("not-a-jwt", TokenPurpose.access)

    def test_foreign_key_is_bad_signature(self, codec: TokenCodec, clock) -> None:
        other = TokenCodec("another-secret-key-0123456789abcdef0123", clock=clock)
        with pytest.raises(BadSignature):
            codec.verify(other.issue("user-1"), TokenPurpose.access)

    def test_tampered_payload_is_bad_signature(self, codec: TokenCodec) -> None:
        header, payload, signature = codec.issue("user-1").split(".")
        forged_payload = jwt.encode({"sub": "admin"}, "x", algorithm="HS256").split(".")[1]
        with pytest.raises(BadSignature):
            codec.verify(f"{header}.{forged_payload}.{signature}", TokenPurpose.access)

    def test_forged_expired_token_reports_bad_signature(self, codec: TokenCodec, clock) -> None:
        """Signature is checked before expiry, so forgeries never look merely expired."""
        other = TokenCodec("another-secret-key-0123456789abcdef0123", clock=clock)
        token = other.issue("user-1")
        clock.advance(days=30)
        with pytest.raises(BadSignature):
            codec.verify(token, TokenPurpose.access)

    def test_missing_claims_is_malformed(self) -> None:
        secret = "claims-secret-0123456789abcdef0123456789"
        token = jwt.encode({"sub": "user-1"}, secret, algorithm="HS256")
        with pytest.raises(MalformedToken):
            TokenCodec(secret).verify(token, TokenPurpose.access)

    def test_unknown_purpose_is_malformed(self) -> None:
        secret = "claims-secret-0123456789abcdef0123456789"
        token = jwt.encode(
            {"sub": "user-1", "iat": 0, "exp": 4102444800, "purpose": "admin"},
            secret,
            algorithm="HS256",
        )
        with pytest.raises(MalformedToken):
            TokenCodec(secret).verify(token, TokenPurpose.access)


def test_missing_signing_key_is_refused() -> None:
    with pytest.raises(SigningKeyMissing):
        TokenCodec("")
