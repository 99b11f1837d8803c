"""
Pydantic schemas for direct user permissions and effective permissions.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from app.core.permissions import Action
from app.schemas.permission import PermissionGrantIn, PermissionSummary


class UserPermissionAssign(BaseModel):
    """Grant (or re-grant) actions on a permission to a user"""
    user_id: int = Field(..., gt=0)
    permission_id: int = Field(..., gt=0)
    granted_actions: List[Action] = Field(..., min_length=1)


class UserPermissionUpdate(UserPermissionAssign):
    """Replace the actions of an existing direct grant"""


class UserPermissionRemove(BaseModel):
    user_id: int = Field(..., gt=0)
    permission_id: int = Field(..., gt=0)


class UserPermissionBulkAssign(BaseModel):
    """Replace every direct grant of a user"""
    user_id: int = Field(..., gt=0)
    permissions: List[PermissionGrantIn] = Field(..., min_length=1)


class UserPermissionOut(BaseModel):
    """Schema for a direct grant"""
    id: int
    user_id: int
    permission_id: int
    granted_actions: List[str]
    permission: Optional[PermissionSummary] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BulkAssignResult(BaseModel):
    message: str
    permissions: List[UserPermissionOut]
    total_assigned: int


class PermissionSourceOut(BaseModel):
    """Where a set of actions came from"""
    type: str  # 'individual' | 'group'
    actions: List[str]
    group_name: Optional[str] = None

    class Config:
        from_attributes = True


class EffectivePermissionOut(BaseModel):
    """Union of a user's direct and group grants on one permission"""
    permission_name: str
    permission_id: int
    module: str
    route: str
    granted_actions: List[str]
    sources: List[PermissionSourceOut] = Field(default_factory=list)

    class Config:
        from_attributes = True


class UserEffectivePermissions(BaseModel):
    user_id: int
    permissions: List[EffectivePermissionOut]
    total_permissions: int
    includes_group_permissions: bool
