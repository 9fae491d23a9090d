"""
api/routes/v1/auth.py -- Authentication and account-recovery REST endpoints.

Routes:
  POST /api/v1/auth/register             -- create account; 201 with session tokens
  POST /api/v1/auth/login                -- password login (throttled)
  POST /api/v1/auth/refresh              -- refresh token -> new access token
  POST /api/v1/auth/verify-email         -- consume email verification token
  POST /api/v1/auth/forgot-password      -- issue reset token and mail it (throttled)
  POST /api/v1/auth/reset-password       -- consume reset token (throttled)
  GET  /api/v1/auth/me                   -- current account (requires auth)
  PUT  /api/v1/auth/profile              -- update name/phone (requires auth)
  PUT  /api/v1/auth/change-password      -- requires auth + current password
  POST /api/v1/auth/resend-verification  -- requires auth, unverified only
  POST /api/v1/auth/logout               -- requires auth; tokens are dropped client-side

Security:
  - login, forgot-password and reset-password hit LoginThrottle BEFORE any
    store lookup, so the ceiling applies to unknown emails too.
  - AccountFlows.login() equalizes timing for unknown emails.
  - Cache-Control: no-store on every response that carries a token.

Handlers that hash passwords or send mail are plain `def`: FastAPI runs them
in its threadpool, so bcrypt and SMTP never block the event loop.
Failures are raised as AuthError and rendered by the handler in api/main.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    SessionData,
    SessionResponse,
    TokenData,
    TokenResponse,
    UpdateProfileRequest,
    UserData,
    UserResponse,
    VerifyEmailRequest,
    user_public,
)
from auth.dependencies import client_origin, get_current_user, get_flows, get_throttle
from auth.flows import AccountFlows, AuthResult
from auth.models import CredentialRecord
from auth.throttle import FORGOT_PASSWORD_SCOPE, LOGIN_SCOPE, RESET_PASSWORD_SCOPE, LoginThrottle

# Auth policy:
# - register, login, refresh, verify-email, forgot-password, reset-password: public
# - me, profile, change-password, resend-verification, logout: get_current_user
router = APIRouter()


def _session_response(result: AuthResult, message: str) -> SessionResponse:
    return SessionResponse(
        message=message,
        data=SessionData(
            user=user_public(result.record),
            token=result.tokens.access_token,
            refresh_token=result.tokens.refresh_token,
            expires_in=result.tokens.expires_in,
        ),
    )


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=SessionResponse, status_code=201)
def register(
    body: RegisterRequest,
    response: Response,
    flows: AccountFlows = Depends(get_flows),
) -> SessionResponse:
    """Create an account. The welcome mail is best-effort and never fails the request."""
    result = flows.register(
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        phone=body.phone,
    )
    response.headers["Cache-Control"] = "no-store"
    return _session_response(
        result, "User registered successfully. Please check your email to verify your account."
    )


@router.post("/auth/login", response_model=SessionResponse)
def login(
    request: Request,
    body: LoginRequest,
    response: Response,
    flows: AccountFlows = Depends(get_flows),
    throttle: LoginThrottle = Depends(get_throttle),
) -> SessionResponse:
    """Authenticate with email and password.

    Returns the same generic error for unknown email and wrong password.
    """
    throttle.hit(LOGIN_SCOPE, client_origin(request))
    result = flows.login(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"
    return _session_response(result, "Login successful")


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(
    body: RefreshRequest,
    response: Response,
    flows: AccountFlows = Depends(get_flows),
) -> TokenResponse:
    """Exchange a refresh-purpose token for a fresh access token."""
    tokens = flows.refresh(body.refresh_token)
    response.headers["Cache-Control"] = "no-store"
    return TokenResponse(
        data=TokenData(token=tokens.access_token, refresh_token=tokens.refresh_token, expires_in=tokens.expires_in)
    )


@router.post("/auth/verify-email", response_model=MessageResponse)
def verify_email(body: VerifyEmailRequest, flows: AccountFlows = Depends(get_flows)) -> MessageResponse:
    flows.verify_email(body.token)
    return MessageResponse(message="Email verified successfully")


@router.post("/auth/forgot-password", response_model=MessageResponse)
def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    flows: AccountFlows = Depends(get_flows),
    throttle: LoginThrottle = Depends(get_throttle),
) -> MessageResponse:
    """Issue a reset token and mail it. 404 for unknown emails, 500 if the mail fails."""
    throttle.hit(FORGOT_PASSWORD_SCOPE, client_origin(request))
    flows.forgot_password(body.email)
    return MessageResponse(message="Password reset email sent successfully")


@router.post("/auth/reset-password", response_model=MessageResponse)
def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    flows: AccountFlows = Depends(get_flows),
    throttle: LoginThrottle = Depends(get_throttle),
) -> MessageResponse:
    throttle.hit(RESET_PASSWORD_SCOPE, client_origin(request))
    flows.reset_password(body.token, body.password)
    return MessageResponse(message="Password reset successfully")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=UserResponse)
def me(current_user: CredentialRecord = Depends(get_current_user)) -> UserResponse:
    """Return the account the bearer token belongs to."""
    return UserResponse(data=UserData(user=user_public(current_user)))


@router.put("/auth/profile", response_model=UserResponse)
def update_profile(
    body: UpdateProfileRequest,
    current_user: CredentialRecord = Depends(get_current_user),
    flows: AccountFlows = Depends(get_flows),
) -> UserResponse:
    record = flows.update_profile(
        current_user,
        first_name=body.first_name,
        last_name=body.last_name,
        phone=body.phone,
    )
    return UserResponse(message="Profile updated successfully", data=UserData(user=user_public(record)))


@router.put("/auth/change-password", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest,
    current_user: CredentialRecord = Depends(get_current_user),
    flows: AccountFlows = Depends(get_flows),
) -> MessageResponse:
    flows.change_password(current_user, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")


@router.post("/auth/resend-verification", response_model=MessageResponse)
def resend_verification(
    current_user: CredentialRecord = Depends(get_current_user),
    flows: AccountFlows = Depends(get_flows),
) -> MessageResponse:
    """Replace the pending verification token and mail it again (best-effort)."""
    delivered = flows.resend_verification(current_user)
    if not delivered:
        return MessageResponse(message="Verification token renewed, but the email could not be sent")
    return MessageResponse(message="Verification email sent successfully")


@router.post("/auth/logout", response_model=MessageResponse)
def logout(current_user: CredentialRecord = Depends(get_current_user)) -> MessageResponse:
    """Stateless logout. Bearer tokens are discarded by the client."""
    return MessageResponse(message="Logged out successfully")
