"""
auth/authenticator.py -- Resolve bearer tokens to live accounts and gate by role.

authenticate() applies its checks in a fixed order and stops at the first
failure:
  1. a token was presented                 -> else Unauthenticated
  2. it verifies as an access token         -> else InvalidToken / ExpiredToken
  3. its subject still exists               -> else Unauthenticated
  4. the account is active                  -> else AccountDeactivated

Step 3 answers exactly like step 1. A valid token for a deleted account must
not confirm to its holder that the token itself is good.

authorize() is a flat role equality check and assumes authenticate() already
ran. Calling it without a record is a programming error, not a 401.

Layer rule: no imports from api/ or fastapi. auth/dependencies.py adapts
these to FastAPI.
"""

from __future__ import annotations

import logging

from auth.errors import AccountDeactivated, AuthError, Forbidden, Unauthenticated
from auth.models import CredentialRecord, Role, TokenPurpose
from auth.store import UserStore
from auth.tokens import TokenCodec

logger = logging.getLogger("storefront.auth")


class Authenticator:
    def __init__(self, store: UserStore, codec: TokenCodec) -> None:
        self.store = store
        self.codec = codec

    def authenticate(self, token: str | None) -> CredentialRecord:
        """Return the active account the access token belongs to."""
        if not token:
            raise Unauthenticated()
        claims = self.codec.verify(token, TokenPurpose.access)
        record = self.store.get_by_id(claims.subject_id)
        if record is None:
            raise Unauthenticated()
        if not record.is_active:
            raise AccountDeactivated()
        return record

    def authenticate_optional(self, token: str | None) -> CredentialRecord | None:
        """Soft variant for public endpoints. Never raises; None on any failure."""
        if not token:
            return None
        try:
            return self.authenticate(token)
        except AuthError as exc:
            logger.debug("Optional authentication ignored: %s", exc.code)
            return None


def authorize(record: CredentialRecord | None, required_role: Role) -> CredentialRecord:
    """Allow record through if its role equals required_role, else raise Forbidden."""
    if record is None:
        raise RuntimeError("authorize() requires an authenticated record; run authenticate() first")
    if record.role is not Role(required_role):
        raise Forbidden()
    return record


def extract_bearer(header_value: str | None) -> str | None:
    """Return the token from an 'Authorization: Bearer <token>' header value."""
    if not header_value:
        return None
    scheme, _, token = header_value.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None
