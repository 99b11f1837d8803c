from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Text, JSON, UniqueConstraint, Index
from sqlalchemy.orm import relationship, validates
from app.db.base import Base
from app.core.permissions import normalize_actions, action_values


class UserGroup(Base):
    """
    Named bundle of permission grants assignable to many users.

    A deactivated group keeps its memberships but contributes nothing to its
    members' effective permissions. Deletion is refused while it has members.
    """
    __tablename__ = "user_groups"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    permissions = relationship(
        "UserGroupPermission",
        back_populates="group",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="UserGroupPermission.id",
    )
    members = relationship("UserGroupMember", back_populates="group", lazy="raise", passive_deletes=True)

    __table_args__ = (
        Index("ix_user_groups_active_name", "is_active", "name"),
    )

    @validates("name")
    def _strip(self, key, value):
        return value.strip() if value is not None else value

    def __repr__(self):
        return f"<UserGroup(id={self.id}, name='{self.name}', active={self.is_active})>"


class UserGroupPermission(Base):
    """
    One (permission, granted actions) entry of a group.

    Same 'view' invariant as a direct grant.
    """
    __tablename__ = "user_group_permissions"

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, ForeignKey("user_groups.id"), nullable=False, index=True)
    permission_id = Column(Integer, ForeignKey("permissions.id"), nullable=False, index=True)
    granted_actions = Column(JSON, nullable=False)

    # Relationships
    group = relationship("UserGroup", back_populates="permissions")
    permission = relationship("Permission", lazy="selectin")

    # Constraints
    __table_args__ = (
        UniqueConstraint('group_id', 'permission_id', name='uq_group_permission'),
    )

    @validates("granted_actions")
    def _ensure_view(self, key, actions):
        return action_values(normalize_actions(actions))

    def __repr__(self):
        return f"<UserGroupPermission(group_id={self.group_id}, permission_id={self.permission_id}, actions={self.granted_actions})>"
