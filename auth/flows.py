"""
auth/flows.py -- Account session and recovery flows.

AccountFlows ties the leaf components together: the store, the bearer-token
codec, the action-token generator, the mailer and the clock. Each public
method is one state transition of a credential record and raises an AuthError
subclass when its precondition does not hold. The HTTP layer maps those
errors to responses; nothing here knows about requests.

Ordering rule: every state change is saved BEFORE any mail is dispatched. A
client that disconnects during an SMTP call leaves a consistent record behind
(at worst, a pending token whose mail never arrived).

Mail policy:
  welcome, verification reminder -> best-effort, failure is logged only.
  password reset                 -> failure raises DeliveryFailed; a reset
                                    that cannot be delivered is useless.

Disclosure policy:
  login          -> one generic InvalidCredentials for unknown email and
                    wrong password, with bcrypt run in both cases.
  forgot_password-> UserNotFound for unknown email (kept on purpose, see
                    DESIGN.md open questions).
  register       -> DuplicateKey for a taken email.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from auth.action_tokens import ActionTokenGenerator
from auth.clock import Clock, SystemClock
from auth.errors import (
    AccountDeactivated,
    AlreadyVerified,
    DeliveryFailed,
    DuplicateKey,
    IncorrectPassword,
    InvalidCredentials,
    InvalidOrExpiredActionToken,
    Unauthenticated,
    UserNotFound,
)
from auth.mailer import Mailer, MessageKind, redact_email
from auth.models import CredentialRecord, TokenPurpose
from auth.passwords import DUMMY_HASH, hash_password, verify_password
from auth.store import UserStore
from auth.tokens import TokenCodec

logger = logging.getLogger("storefront.auth")


@dataclass(frozen=True)
class SessionTokens:
    access_token: str
    refresh_token: str
    expires_in: int


@dataclass(frozen=True)
class AuthResult:
    record: CredentialRecord
    tokens: SessionTokens


class AccountFlows:
    def __init__(
        self,
        store: UserStore,
        codec: TokenCodec,
        action_tokens: ActionTokenGenerator,
        mailer: Mailer,
        clock: Clock | None = None,
    ) -> None:
        self.store = store
        self.codec = codec
        self.action_tokens = action_tokens
        self.mailer = mailer
        self.clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def register(
        self,
        email: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
        phone: str | None = None,
    ) -> AuthResult:
        """Create an unverified, active user account and open a session."""
        if self.store.get_by_email(email) is not None:
            raise DuplicateKey()

        raw_token = self.action_tokens.generate()
        record = CredentialRecord(
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            email_verification_token=self.action_tokens.digest(raw_token),
        )
        self.store.create_user(record)
        logger.info("Registered account %s", record.id)

        if not self.mailer.send(record, MessageKind.welcome, raw_token):
            logger.warning("Welcome mail not delivered for account %s", record.id)

        return AuthResult(record=record, tokens=self._open_session(record))

    def login(self, email: str, password: str) -> AuthResult:
        """Check email and password. Throttling is the caller's job and runs first."""
        record = self.store.get_by_email(email)
        if record is None:
            # Equalize timing -- do NOT return before running bcrypt
            verify_password(password, DUMMY_HASH)
            logger.info("Failed login for unknown email %s", redact_email(email))
            raise InvalidCredentials()
        if not verify_password(password, record.password_hash):
            logger.info("Failed login for account %s", record.id)
            raise InvalidCredentials()
        if not record.is_active:
            raise AccountDeactivated()

        record.last_login = self.store.update_last_login(record.id)
        return AuthResult(record=record, tokens=self._open_session(record))

    def refresh(self, refresh_token: str) -> SessionTokens:
        """Exchange a refresh token for a new access token.

        The refresh token itself is returned unchanged; it keeps its own
        30-day expiry.
        """
        claims = self.codec.verify(refresh_token, TokenPurpose.refresh)
        record = self.store.get_by_id(claims.subject_id)
        if record is None:
            raise Unauthenticated()
        if not record.is_active:
            raise AccountDeactivated()
        return SessionTokens(
            access_token=self.codec.issue(record.id, TokenPurpose.access),
            refresh_token=refresh_token,
            expires_in=self.codec.lifetime(TokenPurpose.access),
        )

    def _open_session(self, record: CredentialRecord) -> SessionTokens:
        return SessionTokens(
            access_token=self.codec.issue(record.id, TokenPurpose.access),
            refresh_token=self.codec.issue(record.id, TokenPurpose.refresh),
            expires_in=self.codec.lifetime(TokenPurpose.access),
        )

    # ------------------------------------------------------------------
    # Email verification
    # ------------------------------------------------------------------

    def verify_email(self, token: str) -> CredentialRecord:
        record = self.store.get_by_verification_digest(self.action_tokens.digest(token))
        if record is None:
            raise InvalidOrExpiredActionToken("Invalid or expired verification token.")
        record.mark_email_verified()
        self.store.save(record)
        logger.info("Email verified for account %s", record.id)
        return record

    def resend_verification(self, record: CredentialRecord) -> bool:
        """Replace the pending verification token and mail the new one.

        Returns whether the reminder was delivered. The old token stops
        working as soon as the new digest is saved.
        """
        if record.is_email_verified:
            raise AlreadyVerified()
        raw_token = self.action_tokens.generate()
        record.email_verification_token = self.action_tokens.digest(raw_token)
        self.store.save(record)

        delivered = self.mailer.send(record, MessageKind.verification_reminder, raw_token)
        if not delivered:
            logger.warning("Verification reminder not delivered for account %s", record.id)
        return delivered

    # ------------------------------------------------------------------
    # Password recovery and change
    # ------------------------------------------------------------------

    def forgot_password(self, email: str) -> None:
        record = self.store.get_by_email(email)
        if record is None:
            raise UserNotFound()

        raw_token = self.action_tokens.generate()
        record.start_password_reset(
            self.action_tokens.digest(raw_token),
            self.action_tokens.reset_expiry(self.clock.now()),
        )
        self.store.save(record)
        logger.info("Password reset issued for account %s", record.id)

        if not self.mailer.send(record, MessageKind.password_reset, raw_token):
            raise DeliveryFailed("Failed to send password reset email.")

    def reset_password(self, token: str, new_password: str) -> None:
        """Consume a reset token. Wrong and expired tokens fail identically."""
        record = self.store.get_by_reset_digest(self.action_tokens.digest(token))
        if (
            record is None
            or record.password_reset_expires is None
            or self.clock.now() >= record.password_reset_expires
        ):
            raise InvalidOrExpiredActionToken("Invalid or expired reset token.")

        record.password_hash = hash_password(new_password)
        record.clear_password_reset()
        self.store.save(record)
        logger.info("Password reset completed for account %s", record.id)

    def change_password(self, record: CredentialRecord, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, record.password_hash):
            raise IncorrectPassword()
        record.password_hash = hash_password(new_password)
        self.store.save(record)
        logger.info("Password changed for account %s", record.id)

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def update_profile(
        self,
        record: CredentialRecord,
        *,
        first_name: str | None = None,
        last_name: str | None = None,
        phone: str | None = None,
    ) -> CredentialRecord:
        """Update the self-service profile fields. Role and security state are untouchable here."""
        if first_name is not None:
            record.first_name = first_name
        if last_name is not None:
            record.last_name = last_name
        if phone is not None:
            record.phone = phone
        self.store.save(record)
        return record
