"""
auth/tokens.py -- Bearer token codec (JWT, HS256 via python-jose).

Security design decisions:
  Purpose claim: every token carries purpose="access" or purpose="refresh".
       verify() is always told which purpose it expects and rejects the other
       one. A leaked 30-day refresh token therefore cannot be replayed as an
       access token, and a short-lived access token cannot mint new sessions.

  Ordered checks: structure -> signature -> expiry -> purpose. Expiry is only
       reported for tokens whose signature verified, so a forged token never
       earns the friendlier "expired, please log in again" answer.

  Clock: python-jose's own exp check reads the wall clock. It is switched off
       and expiry is compared against the injected Clock instead, which keeps
       expiry deterministic under test.

  SECRET_KEY: TokenCodec refuses to exist without one (SigningKeyMissing).
       The codec is built in the app lifespan, so a misconfigured deployment
       fails at startup instead of on the first login.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.clock import Clock, SystemClock
from auth.errors import BadSignature, ExpiredToken, MalformedToken, SigningKeyMissing, WrongTokenPurpose
from auth.models import TokenPurpose

logger = logging.getLogger("storefront.auth")

_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ("sub", "iat", "exp", "purpose")

DEFAULT_ACCESS_EXPIRE_SECONDS = 7 * 24 * 3600
REFRESH_EXPIRE_SECONDS = 30 * 24 * 3600


@dataclass(frozen=True)
class TokenClaims:
    subject_id: str
    purpose: TokenPurpose
    issued_at: datetime
    expires_at: datetime


class TokenCodec:
    """Issue and verify signed, purpose-bound bearer tokens.

    Usage:
        codec = TokenCodec(settings.secret_key)
        token = codec.issue(record.id, TokenPurpose.access)
        claims = codec.verify(token, TokenPurpose.access)
    """

    def __init__(
        self,
        secret_key: str,
        access_expire_seconds: int = DEFAULT_ACCESS_EXPIRE_SECONDS,
        refresh_expire_seconds: int = REFRESH_EXPIRE_SECONDS,
        clock: Clock | None = None,
    ) -> None:
        if not secret_key:
            raise SigningKeyMissing("SECRET_KEY is required to sign tokens. Set SECRET_KEY or run with DEBUG=true.")
        self._secret_key = secret_key
        self._lifetimes = {
            TokenPurpose.access: access_expire_seconds,
            TokenPurpose.refresh: refresh_expire_seconds,
        }
        self._clock = clock or SystemClock()

    def lifetime(self, purpose: TokenPurpose) -> int:
        """Lifetime in seconds of tokens issued for purpose."""
        return self._lifetimes[purpose]

    def issue(self, subject_id: str, purpose: TokenPurpose = TokenPurpose.access) -> str:
        """Encode a signed JWT binding subject, purpose, issue time and expiry."""
        issued_at = self._clock.now()
        expires_at = issued_at + timedelta(seconds=self._lifetimes[purpose])
        payload = {
            "sub": str(subject_id),
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "purpose": purpose.value,
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str, expected_purpose: TokenPurpose) -> TokenClaims:
        """Decode and verify a JWT issued by this codec.

        Raises MalformedToken, BadSignature, ExpiredToken or WrongTokenPurpose.
        """
        try:
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise MalformedToken() from exc

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise BadSignature() from exc

        if any(claim not in payload for claim in _REQUIRED_CLAIMS):
            raise MalformedToken()
        try:
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
            purpose = TokenPurpose(payload["purpose"])
        except (TypeError, ValueError) as exc:
            raise MalformedToken() from exc

        if self._clock.now() >= expires_at:
            raise ExpiredToken()
        if purpose is not expected_purpose:
            logger.warning("Rejected %s token presented as %s", purpose.value, expected_purpose.value)
            raise WrongTokenPurpose()

        return TokenClaims(
            subject_id=str(payload["sub"]),
            purpose=purpose,
            issued_at=issued_at,
            expires_at=expires_at,
        )
