from sqlalchemy import Boolean, Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from app.db.base import Base


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), index=True)
    email = Column(String(100), unique=True, index=True, nullable=False)
    password = Column(String(150), nullable=False)
    # 'super_admin' bypasses permission checks; every other role is resolved through grants
    role = Column(String(30), nullable=False, default="admin", index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    token_version = Column(Integer, default=1, nullable=False)  # invalidate old JWTs
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # Join rows are removed by the delete-user transaction, not by the ORM
    permissions = relationship("UserPermission", back_populates="user", lazy="raise", passive_deletes=True)
    group_memberships = relationship("UserGroupMember", back_populates="user", lazy="raise", passive_deletes=True)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
