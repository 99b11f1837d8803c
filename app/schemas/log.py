"""
Pydantic schemas for the audit trail: API access logs, error logs and the
analytics summary.
"""

from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel


class APIAccessLogOut(BaseModel):
    """One logged request with the permission requirement that let it through"""
    id: int
    user_id: Optional[int] = None
    method: str
    endpoint: str
    status_code: int
    permission: Optional[str] = None
    duration_ms: Optional[int] = None
    response_size: Optional[int] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ErrorLogOut(BaseModel):
    id: int
    user_id: Optional[int] = None
    permission: Optional[str] = None
    error_type: str
    error_message: str
    severity: str
    method: Optional[str] = None
    endpoint: Optional[str] = None
    ip_address: Optional[str] = None
    request_id: Optional[str] = None
    sentry_event_id: Optional[str] = None
    resolved: bool
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ErrorLogResolve(BaseModel):
    """Mark an error resolved, or reopen it with resolved=false"""
    resolved: bool = True


class EndpointCount(BaseModel):
    endpoint: str
    count: int


class LogAnalytics(BaseModel):
    """Access summary over a time window"""
    total_requests: int
    unique_users: int
    avg_response_time_ms: float
    error_rate: float  # percent of responses >= 400
    denied_requests: int = 0  # 403 responses
    top_endpoints: List[EndpointCount]
    requests_by_status: Dict[int, int]
