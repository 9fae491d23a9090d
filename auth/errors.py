"""
auth/errors.py -- Exception taxonomy for the auth core.

Every failure the core can report is an AuthError subclass carrying a stable
machine-readable code, a human message, and the HTTP status the API layer
should answer with. api/main.py registers one exception handler for AuthError
and renders {"success": false, "message": ..., "code": ...}.

The token failures form a small tree: MalformedToken, BadSignature and
WrongTokenPurpose are all InvalidToken, so callers that only care about
"invalid vs expired" can catch InvalidToken and ExpiredToken.

SigningKeyMissing is the one error that is not request-scoped. It is raised
while the app starts and is never caught.

Layer rule: stdlib only.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every recoverable auth-core failure."""

    code = "auth_error"
    status_code = 400
    default_message = "Authentication error."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# 401 -- authentication
# ---------------------------------------------------------------------------


class Unauthenticated(AuthError):
    code = "unauthorized"
    status_code = 401
    default_message = "Access denied. No token provided."


class InvalidToken(AuthError):
    code = "invalid_token"
    status_code = 401
    default_message = "Invalid token."


class MalformedToken(InvalidToken):
    default_message = "Malformed token."


class BadSignature(InvalidToken):
    default_message = "Token signature verification failed."


class WrongTokenPurpose(InvalidToken):
    default_message = "Token cannot be used for this operation."


class ExpiredToken(AuthError):
    code = "token_expired"
    status_code = 401
    default_message = "Token expired."


class AccountDeactivated(AuthError):
    code = "account_deactivated"
    status_code = 401
    default_message = "Account is deactivated."


class InvalidCredentials(AuthError):
    code = "bad_credentials"
    status_code = 401
    default_message = "Invalid email or password."


# ---------------------------------------------------------------------------
# 403 -- authorization
# ---------------------------------------------------------------------------


class Forbidden(AuthError):
    code = "forbidden"
    status_code = 403
    default_message = "Access denied. Admin privileges required."


class ProtectedAccount(Forbidden):
    code = "protected_account"
    default_message = "Admin accounts cannot be modified through this endpoint."


# ---------------------------------------------------------------------------
# 400 / 404 -- flow preconditions
# ---------------------------------------------------------------------------


class InvalidOrExpiredActionToken(AuthError):
    code = "invalid_action_token"
    status_code = 400
    default_message = "Invalid or expired token."


class DuplicateKey(AuthError):
    code = "duplicate"
    status_code = 400
    default_message = "User with this email already exists."


class IncorrectPassword(AuthError):
    code = "incorrect_password"
    status_code = 400
    default_message = "Current password is incorrect."


class AlreadyVerified(AuthError):
    code = "already_verified"
    status_code = 400
    default_message = "Email is already verified."


class UserNotFound(AuthError):
    code = "not_found"
    status_code = 404
    default_message = "User not found."


# ---------------------------------------------------------------------------
# 429 -- throttling
# ---------------------------------------------------------------------------


class RateLimited(AuthError):
    code = "rate_limited"
    status_code = 429
    default_message = "Too many attempts, please try again later."

    def __init__(self, message: str | None = None, retry_after: int = 0) -> None:
        super().__init__(message)
        self.retry_after = retry_after


# ---------------------------------------------------------------------------
# 500 -- fatal to the request
# ---------------------------------------------------------------------------


class CorruptCredential(AuthError):
    code = "corrupt_credential"
    status_code = 500
    default_message = "Stored credential is unreadable."


class DeliveryFailed(AuthError):
    code = "delivery_failed"
    status_code = 500
    default_message = "Failed to send email."


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


class SigningKeyMissing(RuntimeError):
    """No signing secret configured. Raised at startup, never per request."""
