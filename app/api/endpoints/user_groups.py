"""
User Groups API Endpoints

Group CRUD, permission entries and membership management.
Member and permission changes require `user-groups:edit`.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_db, require_permission
from app.core.permissions import Action
from app.models.user import User
from app.models.user_group import UserGroup
from app.schemas.user_group import (
    UserGroupCreate,
    UserGroupUpdate,
    GroupPermissionsUpdate,
    UserGroupOut,
    UserGroupDetail,
    UserGroupList,
    GroupMemberAdd,
    GroupMemberOut,
    GroupMemberList,
    MembershipResult,
    RemovalResult,
    UserMembershipOut,
)
from app.services import access_control
from app.services.notifications import notify_access_changed

router = APIRouter()


def _entries(grants) -> list:
    return [(grant.permission_id, [action.value for action in grant.granted_actions]) for grant in grants]


def _group_out(group: UserGroup, member_count: Optional[int] = None) -> UserGroupOut:
    out = UserGroupOut.model_validate(group)
    out.member_count = member_count
    return out


# ==================== Group CRUD ====================

@router.get("/", response_model=UserGroupList)
async def list_groups(
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    current_user: User = Depends(require_permission("user-groups")),
    db: AsyncSession = Depends(get_db)
):
    """List groups with their permission entries and member counts."""
    groups, counts, total = await access_control.list_groups(
        db, skip=skip, limit=limit, search=search, is_active=is_active
    )
    return {
        "items": [_group_out(group, counts[group.id]) for group in groups],
        "total": total,
        "skip": skip,
        "limit": limit,
    }


@router.post("/", response_model=UserGroupOut, status_code=status.HTTP_201_CREATED)
async def create_group(
    payload: UserGroupCreate,
    current_user: User = Depends(require_permission("user-groups")),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a group, optionally with permission entries.

    Every referenced permission must exist and be active; otherwise 400 names the
    offending ids. A duplicate name is 409.
    """
    group = await access_control.create_group(
        db, payload.name, payload.description, _entries(payload.permissions)
    )
    return _group_out(group, 0)


@router.get("/user/{user_id}/memberships", response_model=List[UserMembershipOut])
async def list_user_memberships(
    user_id: int,
    current_user: User = Depends(require_permission("user-groups", Action.VIEW)),
    db: AsyncSession = Depends(get_db)
):
    """Active groups the user belongs to."""
    memberships = await access_control.list_user_memberships(db, user_id)
    return [UserMembershipOut.from_membership(membership) for membership in memberships]


@router.get("/{group_id}", response_model=UserGroupDetail)
async def get_group(
    group_id: int,
    current_user: User = Depends(require_permission("user-groups")),
    db: AsyncSession = Depends(get_db)
):
    """Group detail with member count and the five most recently assigned members."""
    group, member_count, recent = await access_control.get_group_detail(db, group_id)
    detail = UserGroupDetail.model_validate(group)
    detail.member_count = member_count
    detail.recent_members = [GroupMemberOut.model_validate(member) for member in recent]
    return detail


@router.api_route("/{group_id}", methods=["PUT", "PATCH"], response_model=UserGroupOut)
async def update_group(
    group_id: int,
    payload: UserGroupUpdate,
    current_user: User = Depends(require_permission("user-groups")),
    db: AsyncSession = Depends(get_db)
):
    group = await access_control.update_group(
        db,
        group_id,
        name=payload.name,
        description=payload.description,
        entries=_entries(payload.permissions) if payload.permissions is not None else None,
    )
    return _group_out(group)


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_group(
    group_id: int,
    current_user: User = Depends(require_permission("user-groups")),
    db: AsyncSession = Depends(get_db)
):
    """Delete a group. Refused with 409 while it still has members."""
    await access_control.delete_group(db, group_id)


@router.patch("/{group_id}/activate", response_model=UserGroupOut)
async def activate_group(
    group_id: int,
    current_user: User = Depends(require_permission("user-groups", Action.EDIT)),
    db: AsyncSession = Depends(get_db)
):
    return _group_out(await access_control.set_group_active(db, group_id, True))


@router.patch("/{group_id}/deactivate", response_model=UserGroupOut)
async def deactivate_group(
    group_id: int,
    current_user: User = Depends(require_permission("user-groups", Action.EDIT)),
    db: AsyncSession = Depends(get_db)
):
    return _group_out(await access_control.set_group_active(db, group_id, False))


@router.api_route("/{group_id}/permissions", methods=["PUT", "PATCH"], response_model=UserGroupOut)
async def set_group_permissions(
    group_id: int,
    payload: GroupPermissionsUpdate,
    current_user: User = Depends(require_permission("user-groups", Action.EDIT)),
    db: AsyncSession = Depends(get_db)
):
    """Replace all permission entries of a group."""
    group = await access_control.set_group_permissions(db, group_id, _entries(payload.permissions))
    return _group_out(group)


# ==================== Members ====================

@router.get("/{group_id}/members", response_model=GroupMemberList)
async def list_group_members(
    group_id: int,
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(require_permission("user-groups", Action.VIEW)),
    db: AsyncSession = Depends(get_db)
):
    members, total = await access_control.list_group_members(db, group_id, skip=skip, limit=limit)
    return {"items": members, "total": total, "skip": skip, "limit": limit}


@router.post("/{group_id}/members", response_model=MembershipResult, status_code=status.HTTP_201_CREATED)
async def add_group_member(
    group_id: int,
    payload: GroupMemberAdd,
    response: Response,
    current_user: User = Depends(require_permission("user-groups", Action.EDIT)),
    db: AsyncSession = Depends(get_db)
):
    """
    Add a user to an active group.

    Idempotent: an existing membership is returned with 200 and created=false.
    """
    membership, created = await access_control.assign_to_group(db, group_id, payload.user_id)
    if not created:
        response.status_code = status.HTTP_200_OK
        return {"membership": membership, "created": False, "message": "User is already a member of this group"}

    notify_access_changed(membership.user, [f"Added to group '{membership.group.name}'"])
    return {"membership": membership, "created": True, "message": "User added to group successfully"}


@router.delete("/{group_id}/members/{user_id}", response_model=RemovalResult)
async def remove_group_member(
    group_id: int,
    user_id: int,
    current_user: User = Depends(require_permission("user-groups", Action.EDIT)),
    db: AsyncSession = Depends(get_db)
):
    """Remove a user from a group. Removing a non-member is a no-op."""
    removed = await access_control.remove_from_group(db, group_id, user_id)
    if not removed:
        return {"removed": False, "message": "User is not a member of this group"}

    user = await db.get(User, user_id)
    if user:
        notify_access_changed(user, [f"Removed from group {group_id}"])
    return {"removed": True, "message": "User removed from group successfully"}
