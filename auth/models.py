"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class. CredentialRecord owns the durable security state of one
account; the store persists it and auth/flows.py drives its transitions.
The few methods here exist to keep coupled fields coupled (the reset token
and its expiry are always written together).

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Closed set of account roles. Checked by equality, not hierarchy."""

    user = "user"
    admin = "admin"


class TokenPurpose(str, Enum):
    access = "access"
    refresh = "refresh"


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass
class CredentialRecord:
    """A storefront account's security state plus basic profile fields.

    password_hash is the bcrypt digest; it never leaves the process.

    email_verification_token and password_reset_token hold the HMAC digest of
    the action token, not the raw value (see auth/action_tokens.py). A
    verification is pending iff email_verification_token is set; a reset is
    pending iff password_reset_token and password_reset_expires are both set.
    """

    email: str
    password_hash: str
    first_name: str = ""
    last_name: str = ""
    phone: str | None = None
    role: Role = Role.user
    id: str | None = None
    is_active: bool = True
    is_email_verified: bool = False
    email_verification_token: str | None = None
    password_reset_token: str | None = None
    password_reset_expires: datetime | None = None
    created_at: str | None = None
    updated_at: str | None = None
    last_login: str | None = None

    def __post_init__(self) -> None:
        self.email = normalize_email(self.email)
        self.role = Role(self.role)

    @property
    def is_admin(self) -> bool:
        return self.role is Role.admin

    @property
    def reset_pending(self) -> bool:
        return self.password_reset_token is not None

    def start_password_reset(self, token_digest: str, expires: datetime) -> None:
        self.password_reset_token = token_digest
        self.password_reset_expires = expires

    def clear_password_reset(self) -> None:
        self.password_reset_token = None
        self.password_reset_expires = None

    def mark_email_verified(self) -> None:
        self.is_email_verified = True
        self.email_verification_token = None
