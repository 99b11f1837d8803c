from datetime import datetime, timezone
from sqlalchemy import Column, Integer, ForeignKey, DateTime, JSON, UniqueConstraint
from sqlalchemy.orm import relationship, validates
from app.db.base import Base
from app.core.permissions import normalize_actions, action_values


class UserPermission(Base):
    """
    Direct grant of an action set on one permission to one user.

    Identity is the (user_id, permission_id) pair. granted_actions always
    contains 'view': every assignment passes through normalize_actions.
    """
    __tablename__ = "user_permissions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    permission_id = Column(Integer, ForeignKey("permissions.id"), nullable=False, index=True)
    granted_actions = Column(JSON, nullable=False)  # e.g. ["edit", "view"]
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    user = relationship("User", back_populates="permissions")
    permission = relationship("Permission", lazy="selectin")

    # Constraints
    __table_args__ = (
        UniqueConstraint('user_id', 'permission_id', name='uq_user_permission'),
    )

    @validates("granted_actions")
    def _ensure_view(self, key, actions):
        return action_values(normalize_actions(actions))

    def __repr__(self):
        return f"<UserPermission(user_id={self.user_id}, permission_id={self.permission_id}, actions={self.granted_actions})>"
