from datetime import datetime, timezone
from sqlalchemy import Column, Integer, ForeignKey, DateTime, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from app.db.base import Base


class UserGroupMember(Base):
    """
    Many-to-many link between users and groups.

    Identity is the (user_id, group_id) pair; assigning twice is a no-op.
    """
    __tablename__ = "user_group_members"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    group_id = Column(Integer, ForeignKey("user_groups.id"), nullable=False, index=True)
    assigned_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)

    # Relationships
    user = relationship("User", back_populates="group_memberships", lazy="selectin")
    group = relationship("UserGroup", back_populates="members", lazy="selectin")

    # Constraints
    __table_args__ = (
        UniqueConstraint('user_id', 'group_id', name='uq_user_group_member'),
        Index("ix_user_group_members_group_assigned", "group_id", "assigned_at"),
        Index("ix_user_group_members_user_assigned", "user_id", "assigned_at"),
    )

    def __repr__(self):
        return f"<UserGroupMember(user_id={self.user_id}, group_id={self.group_id})>"
