"""User account endpoints: own profile, admin listing and role management."""

import math

from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger

from src.adspace.api.http.deps import (
    get_current_principal,
    get_current_user,
    get_user_repository,
    require_admin,
)
from src.adspace.api.http.schemas import (
    Envelope,
    Pagination,
    ProfileUpdate,
    RoleUpdate,
    UserListResponse,
    UserOut,
)
from src.adspace.core.errors import Forbidden, UserStoreError
from src.adspace.core.models import Principal
from src.adspace.entities.core.user import ASSIGNABLE_ROLES, Role, User, UserRepository

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=Envelope[UserOut])
async def read_me(user: User = Depends(get_current_user)) -> Envelope[UserOut]:
    return Envelope(data=UserOut.from_user(user))


@router.put("/me", response_model=Envelope[UserOut])
async def update_me(
    update: ProfileUpdate,
    user: User = Depends(get_current_user),
    users: UserRepository = Depends(get_user_repository),
) -> Envelope[UserOut]:
    changes = update.model_dump(exclude_unset=True)
    try:
        updated = users.update(user.model_copy(update=changes))
    except UserStoreError as exc:
        logger.error("Profile update for {} failed: {}", user.id, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update profile"
        ) from exc
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    logger.info("User profile updated: {}", updated.email)
    return Envelope(data=UserOut.from_user(updated), message="Profile updated successfully")


@router.get("", response_model=UserListResponse)
async def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    role: Role | None = None,
    search: str | None = None,
    _: Principal = Depends(require_admin),
    users: UserRepository = Depends(get_user_repository),
) -> UserListResponse:
    """Admin listing, newest first, filtered by role and a search over email and names."""
    offset = (page - 1) * limit
    data = users.list_users(role=role, search=search, offset=offset, limit=limit)
    total = users.count_users(role=role, search=search)

    logger.info("Users retrieved: {} of {} total", len(data), total)
    return UserListResponse(
        data=[UserOut.from_user(u) for u in data],
        pagination=Pagination(
            page=page, limit=limit, total=total, pages=math.ceil(total / limit)
        ),
    )


@router.get("/{user_id}", response_model=Envelope[UserOut])
async def read_user(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    users: UserRepository = Depends(get_user_repository),
) -> Envelope[UserOut]:
    """Readable by the user themself or by an admin."""
    if principal.local_user_id != user_id and principal.role not in (Role.ADMIN, Role.SUPER_ADMIN):
        raise Forbidden("Access denied")

    user = users.get(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return Envelope(data=UserOut.from_user(user))


@router.put("/{user_id}/role", response_model=Envelope[UserOut])
async def update_role(
    user_id: str,
    body: RoleUpdate,
    principal: Principal = Depends(require_admin),
    users: UserRepository = Depends(get_user_repository),
) -> Envelope[UserOut]:
    try:
        role = Role(body.role)
    except ValueError:
        role = None
    if role is None or role not in ASSIGNABLE_ROLES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid role")

    if (
        principal.local_user_id == user_id
        and principal.role is Role.SUPER_ADMIN
        and role is not Role.SUPER_ADMIN
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot demote yourself from SUPER_ADMIN",
        )

    user = users.get(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    try:
        updated = users.update(user.model_copy(update={"role": role}))
    except UserStoreError as exc:
        logger.error("Role update for {} failed: {}", user_id, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update user role"
        ) from exc
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    logger.info("User role updated: {} -> {} by {}", updated.email, role.value, principal.email)
    return Envelope(data=UserOut.from_user(updated), message="User role updated successfully")
