"""
api/routes/v1/admin.py -- Read-only user administration.

Routes:
  GET /api/v1/admin/users            -- paged user list, newest first
  GET /api/v1/admin/users/{user_id}  -- single user

Both require an access token whose email is on ADMIN_EMAILS
(require_elevated). There is no role model beyond that allow-list.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.models import UserListResponse, UserResponse
from auth.dependencies import require_elevated
from auth.errors import AuthError
from auth.models import User
from auth.service import AuthService
from auth.store import UserStore

router = APIRouter()


@router.get("/admin/users", response_model=UserListResponse)
def list_users(
    request: Request,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    current_user: User = Depends(require_elevated),
) -> UserListResponse:
    user_store: UserStore = request.app.state.user_store
    users = user_store.list_users(limit=limit, offset=offset)
    return UserListResponse(
        users=[UserResponse.from_user(u) for u in users],
        total=user_store.count_users(),
        limit=limit,
        offset=offset,
    )


@router.get("/admin/users/{user_id}", response_model=UserResponse)
def get_user(
    request: Request,
    user_id: int,
    current_user: User = Depends(require_elevated),
) -> UserResponse:
    service: AuthService = request.app.state.auth_service
    try:
        user = service.get_profile(user_id)
    except AuthError as exc:
        if exc.code != "user_not_found":
            raise
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        ) from exc
    return UserResponse.from_user(user)
