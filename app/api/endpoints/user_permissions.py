"""
User Permissions API Endpoints

Direct grants of actions on permissions to individual users, and the
effective (direct + group) permission view of a user.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_db, get_resolver, require_permission
from app.core.permissions import Action
from app.models.user import User
from app.schemas.user_permission import (
    UserPermissionAssign,
    UserPermissionUpdate,
    UserPermissionRemove,
    UserPermissionBulkAssign,
    UserPermissionOut,
    BulkAssignResult,
    UserEffectivePermissions,
)
from app.services import access_control
from app.services.notifications import notify_access_changed
from app.services.permission_resolver import EffectivePermissionResolver

router = APIRouter()


def _describe(grant) -> str:
    return f"{grant.permission.name}: {', '.join(grant.granted_actions)}"


@router.post("/assign", response_model=UserPermissionOut, status_code=status.HTTP_201_CREATED)
async def assign_permission(
    payload: UserPermissionAssign,
    response: Response,
    current_user: User = Depends(require_permission("user-permissions", Action.CREATE)),
    db: AsyncSession = Depends(get_db)
):
    """
    Grant actions on a permission to a user.

    Upsert on (user, permission): re-assigning replaces the action set and
    answers 200. 'view' is always included in the stored actions.
    """
    grant, created = await access_control.grant_direct(
        db, payload.user_id, payload.permission_id, [action.value for action in payload.granted_actions]
    )
    if not created:
        response.status_code = status.HTTP_200_OK

    user = await access_control.get_user(db, payload.user_id)
    notify_access_changed(user, [f"Granted {_describe(grant)}"])
    return grant


@router.put("/update", response_model=UserPermissionOut)
async def update_permission(
    payload: UserPermissionUpdate,
    current_user: User = Depends(require_permission("user-permissions", Action.EDIT)),
    db: AsyncSession = Depends(get_db)
):
    """Replace the actions of an existing direct grant (404 when there is none)."""
    grant = await access_control.update_direct_grant(
        db, payload.user_id, payload.permission_id, [action.value for action in payload.granted_actions]
    )
    user = await access_control.get_user(db, payload.user_id)
    notify_access_changed(user, [f"Changed {_describe(grant)}"])
    return grant


@router.delete("/remove")
async def remove_permission(
    payload: UserPermissionRemove,
    current_user: User = Depends(require_permission("user-permissions", Action.DELETE)),
    db: AsyncSession = Depends(get_db)
):
    """Revoke a direct grant (404 when there is none). Group grants are unaffected."""
    await access_control.revoke_direct(db, payload.user_id, payload.permission_id)
    user = await db.get(User, payload.user_id)
    if user:
        notify_access_changed(user, [f"Revoked permission {payload.permission_id}"])
    return {"message": "Permission removed successfully"}


@router.get("/user/{user_id}", response_model=UserEffectivePermissions)
async def get_user_permissions(
    user_id: int,
    include_groups: bool = Query(True),
    module: Optional[str] = None,
    current_user: User = Depends(require_permission("user-permissions", Action.VIEW)),
    resolver: EffectivePermissionResolver = Depends(get_resolver),
    db: AsyncSession = Depends(get_db)
):
    """
    Effective permissions of a user with their sources.

    Query parameters:
    - include_groups: false restricts the view to direct grants
    - module: only permissions tagged with this module
    """
    await access_control.get_user(db, user_id)

    if include_groups:
        permissions = await resolver.resolve(user_id)
    else:
        permissions = await resolver.resolve_direct(user_id)
    if module:
        module = module.strip().lower()
        permissions = [permission for permission in permissions if permission.module == module]

    return {
        "user_id": user_id,
        "permissions": permissions,
        "total_permissions": len(permissions),
        "includes_group_permissions": include_groups,
    }


@router.post("/bulk-assign", response_model=BulkAssignResult)
async def bulk_assign_permissions(
    payload: UserPermissionBulkAssign,
    current_user: User = Depends(require_permission("user-permissions", Action.CREATE)),
    db: AsyncSession = Depends(get_db)
):
    """Replace every direct grant of a user in one transaction."""
    grants = await access_control.bulk_assign_direct(
        db,
        payload.user_id,
        [(entry.permission_id, [action.value for action in entry.granted_actions]) for entry in payload.permissions],
    )
    user = await access_control.get_user(db, payload.user_id)
    notify_access_changed(user, [f"Granted {_describe(grant)}" for grant in grants])
    return {
        "message": "Permissions assigned successfully",
        "permissions": grants,
        "total_assigned": len(grants),
    }
