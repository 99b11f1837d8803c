"""
Permissions API Endpoints

CRUD over the permission registry. Deactivation hides a permission from
every effective-permission computation without touching its grants.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_db, require_permission
from app.core.permissions import Action
from app.models.user import User
from app.schemas.permission import PermissionCreate, PermissionUpdate, PermissionOut, PermissionList
from app.services import access_control

router = APIRouter()


@router.get("/", response_model=PermissionList)
async def list_permissions(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    search: Optional[str] = None,
    module: Optional[str] = None,
    is_active: Optional[bool] = None,
    current_user: User = Depends(require_permission("permissions")),
    db: AsyncSession = Depends(get_db)
):
    """
    List permissions.

    Query parameters:
    - search: matches name, route, description or module
    - module: exact module filter
    - is_active: only active / inactive permissions
    """
    items, total = await access_control.list_permissions(
        db, skip=skip, limit=limit, search=search, module=module, is_active=is_active
    )
    return {"items": items, "total": total, "skip": skip, "limit": limit}


@router.post("/", response_model=PermissionOut, status_code=status.HTTP_201_CREATED)
async def create_permission(
    payload: PermissionCreate,
    current_user: User = Depends(require_permission("permissions")),
    db: AsyncSession = Depends(get_db)
):
    return await access_control.create_permission(db, **payload.model_dump())


@router.get("/{permission_id}", response_model=PermissionOut)
async def get_permission(
    permission_id: int,
    current_user: User = Depends(require_permission("permissions")),
    db: AsyncSession = Depends(get_db)
):
    return await access_control.get_permission(db, permission_id)


@router.api_route("/{permission_id}", methods=["PUT", "PATCH"], response_model=PermissionOut)
async def update_permission(
    permission_id: int,
    payload: PermissionUpdate,
    current_user: User = Depends(require_permission("permissions")),
    db: AsyncSession = Depends(get_db)
):
    return await access_control.update_permission(db, permission_id, **payload.model_dump(exclude_unset=True))


@router.patch("/{permission_id}/activate", response_model=PermissionOut)
async def activate_permission(
    permission_id: int,
    current_user: User = Depends(require_permission("permissions", Action.EDIT)),
    db: AsyncSession = Depends(get_db)
):
    return await access_control.set_permission_active(db, permission_id, True)


@router.patch("/{permission_id}/deactivate", response_model=PermissionOut)
async def deactivate_permission(
    permission_id: int,
    current_user: User = Depends(require_permission("permissions", Action.EDIT)),
    db: AsyncSession = Depends(get_db)
):
    return await access_control.set_permission_active(db, permission_id, False)


@router.delete("/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_permission(
    permission_id: int,
    current_user: User = Depends(require_permission("permissions")),
    db: AsyncSession = Depends(get_db)
):
    """Delete a permission. Refused with 409 while any user or group references it."""
    await access_control.delete_permission(db, permission_id)
