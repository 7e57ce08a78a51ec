"""
api/routes/v1/users.py -- User listing and profile management REST endpoints.

Routes:
  GET    /api/v1/users                   -- paginated list (page, limit, search, active)
  GET    /api/v1/users/stats/overview    -- account counts
  GET    /api/v1/users/{id}              -- one record (owner or admin)
  PUT    /api/v1/users/{id}              -- partial profile update (owner or admin)
  DELETE /api/v1/users/{id}              -- soft delete (owner or admin, never self)
  PUT    /api/v1/users/{id}/activate     -- set active=true (owner or admin)
  PUT    /api/v1/users/{id}/deactivate   -- set active=false (owner or admin, never self)

Route order matters: /users/stats/overview is declared before /users/{id} so
"stats" is never captured as an id.

Ownership is checked before the record is loaded, so a caller without access
gets 403 whether or not the target exists.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.models import (
    MessageResponse,
    PaginationResponse,
    StatsData,
    StatsResponse,
    UserData,
    UserEnvelope,
    UserListData,
    UserListResponse,
    UserResponse,
    UserStatsResponse,
    UserUpdateRequest,
)
from auth.dependencies import get_account_service, get_current_user
from auth.gate import authorize_owner_or_admin, require_not_self
from auth.models import AuthenticatedUser
from auth.service import MAX_PAGE_SIZE, AccountService

# Auth policy: every route requires auth (get_current_user). Routes with an
# {id} additionally require the caller to own the record or be an admin.
router = APIRouter()


# ---------------------------------------------------------------------------
# Collection endpoints
# ---------------------------------------------------------------------------


@router.get("/users", response_model=UserListResponse)
def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=MAX_PAGE_SIZE),
    search: Optional[str] = Query(default=None, max_length=255),
    active: Optional[bool] = Query(default=None),
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> UserListResponse:
    """List non-deleted users, newest first.

    ``search`` matches nome or email (case-insensitive substring);
    ``active`` filters on the active flag when given.
    """
    users, pagination = service.list_users(page=page, limit=limit, search=search or None, active=active)
    return UserListResponse(
        data=UserListData(
            users=[UserResponse.from_domain(u) for u in users],
            pagination=PaginationResponse.from_domain(pagination),
        )
    )


@router.get("/users/stats/overview", response_model=StatsResponse)
def user_stats(
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> StatsResponse:
    return StatsResponse(data=StatsData(stats=UserStatsResponse(**service.user_stats())))


# ---------------------------------------------------------------------------
# Single-record endpoints
# ---------------------------------------------------------------------------


@router.get("/users/{user_id}", response_model=UserEnvelope)
def get_user(
    user_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> UserEnvelope:
    authorize_owner_or_admin(current_user, user_id)
    return UserEnvelope(data=UserData(user=UserResponse.from_domain(service.get_user(user_id))))


@router.put("/users/{user_id}", response_model=UserEnvelope)
def update_user(
    user_id: str,
    body: UserUpdateRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> UserEnvelope:
    """Apply a partial update; omitted fields are left as they are.

    The password is not changed here -- see POST /auth/change-password.
    """
    authorize_owner_or_admin(current_user, user_id)
    updated = service.update_profile(user_id, body.to_update())
    return UserEnvelope(
        message="Usuário atualizado com sucesso",
        data=UserData(user=UserResponse.from_domain(updated)),
    )


@router.delete("/users/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    """Soft delete: the row stays, stamped with deleted_at and deleted_by."""
    authorize_owner_or_admin(current_user, user_id)
    require_not_self(current_user, user_id, "delete")
    service.soft_delete(user_id, deleted_by=current_user.id)
    return MessageResponse(message="Usuário deletado com sucesso")


@router.put("/users/{user_id}/activate", response_model=MessageResponse)
def activate_user(
    user_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    authorize_owner_or_admin(current_user, user_id)
    service.set_active(user_id, True)
    return MessageResponse(message="Usuário ativado com sucesso")


@router.put("/users/{user_id}/deactivate", response_model=MessageResponse)
def deactivate_user(
    user_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    authorize_owner_or_admin(current_user, user_id)
    require_not_self(current_user, user_id, "deactivate")
    service.set_active(user_id, False)
    return MessageResponse(message="Usuário desativado com sucesso")
