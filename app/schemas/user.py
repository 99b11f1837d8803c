"""
Pydantic schemas for Users.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field

from app.schemas.permission import PermissionGrantIn
from app.schemas.user_group import UserMembershipOut
from app.schemas.user_permission import UserPermissionOut


class UserBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr


class UserCreate(UserBase):
    """Create a user together with its initial direct grants and groups. New users are always admins."""
    password: str = Field(..., min_length=8, max_length=128)
    permissions: List[PermissionGrantIn] = Field(default_factory=list)
    groups: List[int] = Field(default_factory=list)


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8, max_length=128)
    role: Optional[str] = Field(None, pattern="^(admin|super_admin)$")
    is_active: Optional[bool] = None


class UserOut(BaseModel):
    id: int
    name: Optional[str] = None
    email: str
    role: str
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserDetail(UserOut):
    """User with its direct grants and active group memberships"""
    permissions: List[UserPermissionOut] = Field(default_factory=list)
    groups: List[UserMembershipOut] = Field(default_factory=list)


class UserCreated(BaseModel):
    user: UserOut
    permissions_assigned: int
    groups_assigned: int


class UserList(BaseModel):
    items: List[UserOut]
    total: int
    skip: int
    limit: int
