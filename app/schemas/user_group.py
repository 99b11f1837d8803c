"""
Pydantic schemas for User Groups and group memberships.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from app.schemas.permission import PermissionGrantIn, PermissionSummary


class UserGroupBase(BaseModel):
    """Base schema for user group"""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class UserGroupCreate(UserGroupBase):
    """Schema for creating a group, optionally with its permission entries"""
    permissions: List[PermissionGrantIn] = Field(default_factory=list)


class UserGroupUpdate(BaseModel):
    """Schema for updating a group. `permissions`, when given, replaces all entries."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    permissions: Optional[List[PermissionGrantIn]] = None


class GroupPermissionsUpdate(BaseModel):
    """Full replacement of a group's permission entries"""
    permissions: List[PermissionGrantIn] = Field(default_factory=list)


class GroupPermissionOut(BaseModel):
    """One permission entry of a group"""
    permission_id: int
    granted_actions: List[str]
    permission: Optional[PermissionSummary] = None

    class Config:
        from_attributes = True


class UserGroupOut(UserGroupBase):
    """Schema for group output"""
    id: int
    is_active: bool
    permissions: List[GroupPermissionOut] = Field(default_factory=list)
    member_count: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class GroupMemberUser(BaseModel):
    id: int
    name: Optional[str] = None
    email: str

    class Config:
        from_attributes = True


class GroupMemberOut(BaseModel):
    """Membership row with the member's basic details"""
    id: int
    user_id: int
    group_id: int
    assigned_at: datetime
    user: Optional[GroupMemberUser] = None

    class Config:
        from_attributes = True


class UserGroupDetail(UserGroupOut):
    """Group with its five most recent members"""
    recent_members: List[GroupMemberOut] = Field(default_factory=list)


class UserGroupList(BaseModel):
    items: List[UserGroupOut]
    total: int
    skip: int
    limit: int


class GroupMemberAdd(BaseModel):
    """Schema for adding a user to a group"""
    user_id: int = Field(..., gt=0)


class GroupMemberList(BaseModel):
    items: List[GroupMemberOut]
    total: int
    skip: int
    limit: int


class MembershipResult(BaseModel):
    """Result of an idempotent assignment"""
    membership: GroupMemberOut
    created: bool
    message: str


class RemovalResult(BaseModel):
    """Result of an idempotent removal"""
    removed: bool
    message: str


class UserMembershipOut(BaseModel):
    """A user's membership in an active group"""
    id: int
    group_id: int
    group_name: str
    group_description: Optional[str] = None
    assigned_at: datetime

    @classmethod
    def from_membership(cls, membership) -> "UserMembershipOut":
        return cls(
            id=membership.id,
            group_id=membership.group_id,
            group_name=membership.group.name,
            group_description=membership.group.description,
            assigned_at=membership.assigned_at,
        )
