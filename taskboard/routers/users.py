from fastapi import APIRouter, Depends, Request
from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.core.exceptions import BadRequest
from taskboard.core.policy import assert_can_access
from taskboard.database import get_db
from taskboard.deps import AdminUser, CurrentUser, UserServiceDep
from taskboard.models import RoleUpdate, UserPage, UserRead
from taskboard.validation import UserListParams, validate

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/", response_model=UserPage)
async def list_users(
    request: Request,
    _: AdminUser,
    users: UserServiceDep,
    db: AsyncSession = Depends(get_db),
):
    """List users with pagination (admin only)"""
    params, errors = validate(UserListParams, request.query_params)
    if errors:
        raise BadRequest("Validation failed", details=[e.as_dict() for e in errors])
    return await users.list_paged(params.to_raw(), db)


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: int,
    requester: CurrentUser,
    users: UserServiceDep,
    db: AsyncSession = Depends(get_db),
):
    """Get a user by ID (self or admin)"""
    assert_can_access(
        user_id, requester, "Access denied. You can only access your own resources."
    )
    return await users.get_by_id(user_id, db)


@router.patch("/{user_id}/role", response_model=UserRead)
async def update_role(
    user_id: int,
    role_data: RoleUpdate,
    _: AdminUser,
    users: UserServiceDep,
    db: AsyncSession = Depends(get_db),
):
    """Change a user's role (admin only)"""
    return await users.update_role(user_id, role_data.role, db)
