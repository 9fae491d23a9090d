"""
api/routes/v1/users.py -- Admin user management.

Routes (all require_admin, i.e. get_current_user then authorize(admin)):
  GET    /api/v1/users                        -- paginated, filterable list
  GET    /api/v1/users/stats/overview         -- account counts
  GET    /api/v1/users/{user_id}              -- one account
  PATCH  /api/v1/users/{user_id}/toggle-status -- flip is_active
  DELETE /api/v1/users/{user_id}              -- delete account

Admin accounts are protected: peer admins can neither deactivate nor delete
them here (ProtectedAccount, 403). Only a superuser path outside this service
may touch admin records.

The stats route is declared before /users/{user_id} so "stats" is never
captured as an id.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.models import (
    MessageResponse,
    Pagination,
    UserData,
    UserListData,
    UserListResponse,
    UserResponse,
    UserStats,
    UserStatsResponse,
    user_public,
)
from auth.dependencies import require_admin
from auth.errors import ProtectedAccount, UserNotFound
from auth.models import CredentialRecord, Role
from auth.store import UserStore

logger = logging.getLogger("storefront.api")

router = APIRouter()


class SortField(str, Enum):
    created_at = "created_at"
    email = "email"
    first_name = "first_name"
    last_name = "last_name"


class SortOrder(str, Enum):
    asc = "asc"
    desc = "desc"


def _load_target(store: UserStore, user_id: str) -> CredentialRecord:
    target = store.get_by_id(user_id)
    if target is None:
        raise UserNotFound()
    return target


@router.get("/users", response_model=UserListResponse)
def list_users(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: Optional[str] = Query(default=None, max_length=100),
    role: Optional[Role] = None,
    is_email_verified: Optional[bool] = None,
    sort_by: SortField = SortField.created_at,
    sort_order: SortOrder = SortOrder.desc,
    admin: CredentialRecord = Depends(require_admin),
) -> UserListResponse:
    store: UserStore = request.app.state.user_store
    users, total = store.list_users(
        search=search,
        role=role,
        is_email_verified=is_email_verified,
        sort_by=sort_by.value,
        descending=sort_order is SortOrder.desc,
        offset=(page - 1) * limit,
        limit=limit,
    )
    return UserListResponse(
        data=UserListData(
            users=[user_public(u) for u in users],
            pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
        )
    )


@router.get("/users/stats/overview", response_model=UserStatsResponse)
def user_stats(request: Request, admin: CredentialRecord = Depends(require_admin)) -> UserStatsResponse:
    store: UserStore = request.app.state.user_store
    since = datetime.now(timezone.utc) - timedelta(days=30)
    return UserStatsResponse(data=UserStats(**store.stats(recent_since=since)))


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(request: Request, user_id: str, admin: CredentialRecord = Depends(require_admin)) -> UserResponse:
    target = _load_target(request.app.state.user_store, user_id)
    return UserResponse(data=UserData(user=user_public(target)))


@router.patch("/users/{user_id}/toggle-status", response_model=UserResponse)
def toggle_status(request: Request, user_id: str, admin: CredentialRecord = Depends(require_admin)) -> UserResponse:
    store: UserStore = request.app.state.user_store
    target = _load_target(store, user_id)
    if target.is_admin:
        raise ProtectedAccount("Cannot deactivate admin users.")

    target.is_active = not target.is_active
    store.save(target)
    state = "activated" if target.is_active else "deactivated"
    logger.info("Admin %s %s account %s", admin.id, state, target.id)
    return UserResponse(message=f"User {state} successfully", data=UserData(user=user_public(target)))


@router.delete("/users/{user_id}", response_model=MessageResponse)
def delete_user(request: Request, user_id: str, admin: CredentialRecord = Depends(require_admin)) -> MessageResponse:
    store: UserStore = request.app.state.user_store
    target = _load_target(store, user_id)
    if target.is_admin:
        raise ProtectedAccount("Cannot delete admin users.")

    store.delete_user(target.id)
    logger.info("Admin %s deleted account %s", admin.id, target.id)
    return MessageResponse(message="User deleted successfully")
