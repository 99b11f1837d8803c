from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, BigInteger, ForeignKey, DateTime, Text
from sqlalchemy.orm import relationship
from app.db.base import Base

# SQLite only auto-increments INTEGER primary keys
LogId = BigInteger().with_variant(Integer, "sqlite")


class APIAccessLog(Base):
    """
    API access logging for audit and analytics.

    Tracks all API requests with user context, the permission requirement that
    let them through, performance metrics and request metadata.
    """
    __tablename__ = "api_access_logs"

    id = Column(LogId, primary_key=True, index=True)

    # User context
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # Request information
    endpoint = Column(String(255), nullable=False, index=True)
    method = Column(String(10), nullable=False)  # GET, POST, PUT, DELETE, etc.
    status_code = Column(Integer, nullable=False)
    permission = Column(String(255), nullable=True)  # 'name:action' requirement(s) granted by the gate

    # Client information
    ip_address = Column(String(45), nullable=True)  # IPv6 compatible
    user_agent = Column(Text, nullable=True)

    # Correlation and tracking
    request_id = Column(String(36), nullable=True, unique=True, index=True)

    # Performance metrics
    duration_ms = Column(Integer, nullable=True)

    # Security and audit
    request_body_hash = Column(String(64), nullable=True)  # SHA256 hash of request body
    response_size = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)

    user = relationship("User", foreign_keys=[user_id])

    def __repr__(self):
        return f"<APIAccessLog(id={self.id}, endpoint='{self.endpoint}', method='{self.method}', status={self.status_code})>"
