"""
Users API Endpoints

Admin user management. A user is created together with its initial direct
grants and group memberships in a single transaction.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_db, require_permission, require_permission_if
from app.core.permissions import Action
from app.models.user import User
from app.schemas.user import UserCreate, UserUpdate, UserOut, UserDetail, UserCreated, UserList
from app.schemas.user_group import UserMembershipOut
from app.schemas.user_permission import UserPermissionOut
from app.services import user_management
from app.services.notifications import notify_access_changed

router = APIRouter()


def is_other_user(request: Request, current_user: User) -> bool:
    try:
        return int(request.path_params["user_id"]) != current_user.id
    except ValueError:
        return True


@router.post("/", response_model=UserCreated, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    current_user: User = Depends(require_permission("users", Action.CREATE)),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a user with direct permissions and group memberships.

    All-or-nothing: a duplicate email (409) or any invalid permission or group
    (400) leaves nothing behind.
    """
    user, permissions_assigned, groups_assigned = await user_management.create_user_with_access(
        db,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        entries=[(p.permission_id, [a.value for a in p.granted_actions]) for p in payload.permissions],
        group_ids=payload.groups,
    )
    if permissions_assigned or groups_assigned:
        notify_access_changed(
            user, [f"Account created with {permissions_assigned} permissions and {groups_assigned} groups"]
        )
    return {"user": user, "permissions_assigned": permissions_assigned, "groups_assigned": groups_assigned}


@router.get("/", response_model=UserList)
async def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    current_user: User = Depends(require_permission("users")),
    db: AsyncSession = Depends(get_db)
):
    users, total = await user_management.list_users(
        db, skip=skip, limit=limit, search=search, role=role, is_active=is_active
    )
    return {"items": users, "total": total, "skip": skip, "limit": limit}


@router.get("/{user_id}", response_model=UserDetail)
async def get_user(
    user_id: int,
    current_user: User = Depends(require_permission_if(is_other_user, "users", Action.VIEW)),
    db: AsyncSession = Depends(get_db)
):
    """User with direct grants and active group memberships. Reading yourself needs no permission."""
    user, grants, memberships = await user_management.get_user_detail(db, user_id)
    detail = UserDetail.model_validate(user)
    detail.permissions = [UserPermissionOut.model_validate(grant) for grant in grants]
    detail.groups = [UserMembershipOut.from_membership(membership) for membership in memberships]
    return detail


@router.api_route("/{user_id}", methods=["PUT", "PATCH"], response_model=UserOut)
async def update_user(
    user_id: int,
    payload: UserUpdate,
    current_user: User = Depends(require_permission("users", Action.EDIT)),
    db: AsyncSession = Depends(get_db)
):
    """
    Update a user. Changing the password invalidates the user's existing tokens.
    Only super admins may change a role.
    """
    return await user_management.update_user(
        db, user_id, actor=current_user, **payload.model_dump(exclude_unset=True)
    )


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: int,
    current_user: User = Depends(require_permission("users", Action.DELETE)),
    db: AsyncSession = Depends(get_db)
):
    """Delete a user with all direct grants and memberships. Super admins cannot be deleted."""
    await user_management.delete_user(db, user_id)
