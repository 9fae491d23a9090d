"""
auth/action_tokens.py -- Single-use capability tokens for email verification
and password reset.

These are deliberately NOT JWTs. Their validity is decided entirely by a
match against the credential record, so clearing the field revokes them on
the spot.

Storage: the record keeps HMAC-SHA256(SECRET_KEY, raw_token), never the raw
token (same approach as API-key hashing). The digest is deterministic, so the
store can look a token up by equality; a database dump alone does not yield
usable reset links.

Entropy: secrets.token_urlsafe(32) -> 32 random bytes, URL-safe base64, so
the value drops straight into a link query string.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta

TOKEN_BYTES = 32
RESET_TOKEN_TTL_SECONDS = 3600


class ActionTokenGenerator:
    def __init__(
        self,
        secret_key: str,
        reset_ttl_seconds: int = RESET_TOKEN_TTL_SECONDS,
        random_source: Callable[[int], str] = secrets.token_urlsafe,
    ) -> None:
        self._secret_key = secret_key.encode("utf-8")
        self._reset_ttl = timedelta(seconds=reset_ttl_seconds)
        self._random_source = random_source

    def generate(self) -> str:
        """Return a fresh URL-safe token with TOKEN_BYTES bytes of entropy."""
        return self._random_source(TOKEN_BYTES)

    def digest(self, raw_token: str) -> str:
        """Return the storable HMAC-SHA256 hex digest of raw_token."""
        return hmac.new(self._secret_key, raw_token.encode("utf-8"), hashlib.sha256).hexdigest()

    def reset_expiry(self, now: datetime) -> datetime:
        return now + self._reset_ttl
