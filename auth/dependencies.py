"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The bearer credential arrives in the Authorization: Bearer <token> header.
All verification logic lives in auth/authenticator.py; this module only pulls
collaborators off app.state and pins the order of the checks.

get_optional_user() is the soft variant (returns None on any failure).
get_current_user() raises the Authenticator's AuthError (401) and attaches the
record to request.state.user.
require_role(role) depends on get_current_user(), so authorization can never
run before authentication.

Layer rule: may import fastapi; no imports from api/.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, Request

from auth.authenticator import Authenticator, authorize, extract_bearer
from auth.flows import AccountFlows
from auth.models import CredentialRecord, Role
from auth.throttle import LoginThrottle


def get_authenticator(request: Request) -> Authenticator:
    return request.app.state.authenticator


def get_flows(request: Request) -> AccountFlows:
    return request.app.state.flows


def get_throttle(request: Request) -> LoginThrottle:
    return request.app.state.login_throttle


def client_origin(request: Request) -> str:
    """Throttle key for the caller. Same source slowapi's get_remote_address uses."""
    return request.client.host if request.client else "unknown"


def get_optional_user(request: Request) -> CredentialRecord | None:
    """Resolve the caller if a valid bearer token is present. Never raises."""
    token = extract_bearer(request.headers.get("Authorization"))
    record = get_authenticator(request).authenticate_optional(token)
    request.state.user = record
    return record


def get_current_user(request: Request) -> CredentialRecord:
    """Require authentication. Raises an AuthError (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: CredentialRecord = Depends(get_current_user)): ...
    """
    token = extract_bearer(request.headers.get("Authorization"))
    record = get_authenticator(request).authenticate(token)
    request.state.user = record
    return record


def require_role(role: Role) -> Callable[..., CredentialRecord]:
    """Build a dependency that authenticates, then requires an exact role (403 otherwise)."""

    def dependency(user: CredentialRecord = Depends(get_current_user)) -> CredentialRecord:
        return authorize(user, role)

    dependency.__name__ = f"require_{Role(role).value}"
    return dependency


require_admin = require_role(Role.admin)
