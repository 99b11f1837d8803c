from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, Index
from sqlalchemy.orm import validates
from app.db.base import Base


class Permission(Base):
    """
    Registry of named capability areas (e.g. 'billing', 'user-groups').

    Actions (view/create/edit/delete) are granted on a permission through
    UserPermission rows or group entries. Deactivating a permission hides it
    from every effective-permission computation without touching those rows.
    """
    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, unique=True, index=True)  # lower-cased
    route = Column(String(255), nullable=False)  # informational
    description = Column(Text, nullable=True)
    module = Column(String(100), nullable=False, index=True)  # grouping tag, lower-cased
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_permissions_module_active", "module", "is_active"),
        Index("ix_permissions_name_active", "name", "is_active"),
    )

    @validates("name", "module")
    def _lowercase(self, key, value):
        return value.strip().lower() if value is not None else value

    @validates("route")
    def _strip(self, key, value):
        return value.strip() if value is not None else value

    def __repr__(self):
        return f"<Permission(id={self.id}, name='{self.name}', module='{self.module}', active={self.is_active})>"
