from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Text
from sqlalchemy.orm import relationship
from app.db.base import Base
from app.models.api_access_log import LogId


class ErrorLog(Base):
    """
    Unhandled errors raised while serving admin requests.

    Each row keeps the caller, the permission requirement the gate had
    granted (if any) and the Sentry event id, so a failure can be traced back
    to who did what. Admins with logs:edit mark rows resolved.
    """
    __tablename__ = "error_logs"

    id = Column(LogId, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    permission = Column(String(255), nullable=True)  # 'name:action' granted before the failure

    error_type = Column(String(100), nullable=False, index=True)  # exception class name
    error_message = Column(Text, nullable=False)
    stack_trace = Column(Text, nullable=True)
    severity = Column(String(20), nullable=False, default="error")  # warning | error | critical

    endpoint = Column(String(255), nullable=True)
    method = Column(String(10), nullable=True)
    ip_address = Column(String(45), nullable=True)
    request_id = Column(String(36), nullable=True, index=True)  # joins api_access_logs.request_id
    sentry_event_id = Column(String(36), nullable=True, index=True)

    resolved = Column(Boolean, default=False, nullable=False, index=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    resolved_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)

    user = relationship("User", foreign_keys=[user_id])
    resolver = relationship("User", foreign_keys=[resolved_by])

    def __repr__(self):
        return f"<ErrorLog(id={self.id}, type='{self.error_type}', endpoint='{self.endpoint}', resolved={self.resolved})>"
