"""
Pydantic schemas for Permissions.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

from app.core.permissions import Action


class PermissionBase(BaseModel):
    """Base schema for permission with common fields"""
    name: str = Field(..., min_length=1, max_length=100)
    route: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    module: str = Field(..., min_length=1, max_length=100)

    @field_validator("name", "module")
    @classmethod
    def lowercase(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("must not be blank")
        return value


class PermissionCreate(PermissionBase):
    """Schema for creating a new permission"""
    is_active: bool = True


class PermissionUpdate(BaseModel):
    """Schema for updating a permission"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    route: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    module: Optional[str] = Field(None, min_length=1, max_length=100)

    @field_validator("name", "module")
    @classmethod
    def lowercase(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip().lower()
        if not value:
            raise ValueError("must not be blank")
        return value


class PermissionSummary(BaseModel):
    """Permission details embedded in grants and group entries"""
    id: int
    name: str
    route: str
    description: Optional[str] = None
    module: str

    class Config:
        from_attributes = True


class PermissionOut(PermissionSummary):
    """Schema for permission output"""
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PermissionGrantIn(BaseModel):
    """A permission id with the actions to grant on it ('view' is always added)"""
    permission_id: int = Field(..., gt=0)
    granted_actions: List[Action] = Field(..., min_length=1)


class PermissionList(BaseModel):
    """Paginated permission listing"""
    items: List[PermissionOut]
    total: int
    skip: int
    limit: int
