"""
Logs API Endpoints

Read access to the API access audit trail and error logs, gated by the
`logs` permission.
"""

from typing import List, Optional
from datetime import datetime, timezone, timedelta
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_, desc

from app.api.dependencies import get_db, require_permission
from app.core.exceptions import NotFound
from app.core.permissions import Action
from app.models.user import User
from app.models.api_access_log import APIAccessLog
from app.models.error_log import ErrorLog
from app.schemas.log import (
    APIAccessLogOut,
    ErrorLogOut,
    ErrorLogResolve,
    LogAnalytics
)

router = APIRouter()


def _date_range(column, start_date: Optional[datetime], end_date: Optional[datetime]) -> list:
    filters = []
    if start_date:
        filters.append(column >= start_date)
    if end_date:
        filters.append(column <= end_date)
    return filters


@router.get("/access", response_model=List[APIAccessLogOut])
async def list_access_logs(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    user_id: Optional[int] = None,
    endpoint: Optional[str] = None,
    method: Optional[str] = None,
    status_code: Optional[int] = None,
    permission: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    current_user: User = Depends(require_permission("logs", Action.VIEW)),
    db: AsyncSession = Depends(get_db)
):
    """
    List API access logs, most recent first.

    Query parameters:
    - user_id, endpoint (substring), method, status_code
    - permission: substring of the 'name:action' requirement that was granted
    - start_date / end_date
    """
    filters = _date_range(APIAccessLog.created_at, start_date, end_date)
    if user_id:
        filters.append(APIAccessLog.user_id == user_id)
    if endpoint:
        filters.append(APIAccessLog.endpoint.contains(endpoint))
    if method:
        filters.append(APIAccessLog.method == method.upper())
    if status_code:
        filters.append(APIAccessLog.status_code == status_code)
    if permission:
        filters.append(APIAccessLog.permission.contains(permission.lower()))

    query = select(APIAccessLog)
    if filters:
        query = query.filter(and_(*filters))
    result = await db.execute(query.order_by(desc(APIAccessLog.created_at)).offset(skip).limit(limit))
    return result.scalars().all()


@router.get("/errors", response_model=List[ErrorLogOut])
async def list_error_logs(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    user_id: Optional[int] = None,
    error_type: Optional[str] = None,
    permission: Optional[str] = None,
    severity: Optional[str] = None,
    resolved: Optional[bool] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    current_user: User = Depends(require_permission("logs", Action.VIEW)),
    db: AsyncSession = Depends(get_db)
):
    """List error logs, most recent first. `permission` filters on the granted requirement text."""
    filters = _date_range(ErrorLog.created_at, start_date, end_date)
    if user_id:
        filters.append(ErrorLog.user_id == user_id)
    if error_type:
        filters.append(ErrorLog.error_type.contains(error_type))
    if permission:
        filters.append(ErrorLog.permission.contains(permission.lower()))
    if severity:
        filters.append(ErrorLog.severity == severity)
    if resolved is not None:
        filters.append(ErrorLog.resolved.is_(resolved))

    query = select(ErrorLog)
    if filters:
        query = query.filter(and_(*filters))
    result = await db.execute(query.order_by(desc(ErrorLog.created_at)).offset(skip).limit(limit))
    return result.scalars().all()


@router.patch("/errors/{error_id}", response_model=ErrorLogOut)
async def resolve_error(
    error_id: int,
    resolve_data: ErrorLogResolve,
    current_user: User = Depends(require_permission("logs", Action.EDIT)),
    db: AsyncSession = Depends(get_db)
):
    """Mark an error as resolved (or reopen it)."""
    error_log = await db.get(ErrorLog, error_id)
    if not error_log:
        raise NotFound("Error log not found")

    error_log.resolved = resolve_data.resolved
    error_log.resolved_at = datetime.now(timezone.utc) if resolve_data.resolved else None
    error_log.resolved_by = current_user.id if resolve_data.resolved else None

    await db.commit()
    return error_log


@router.get("/analytics", response_model=LogAnalytics)
async def get_log_analytics(
    hours: int = Query(24, ge=1, le=720),  # max 30 days
    current_user: User = Depends(require_permission("logs", Action.VIEW)),
    db: AsyncSession = Depends(get_db)
):
    """
    Summary of API access over the last `hours` hours: volume, unique users,
    latency, error rate, authorization denials and the busiest endpoints.
    """
    since = APIAccessLog.created_at >= datetime.now(timezone.utc) - timedelta(hours=hours)

    async def scalar(*columns, extra=()):
        return (await db.execute(select(*columns).filter(since, *extra))).scalar()

    total_requests = await scalar(func.count(APIAccessLog.id)) or 0
    unique_users = await scalar(
        func.count(func.distinct(APIAccessLog.user_id)), extra=(APIAccessLog.user_id.isnot(None),)
    ) or 0
    avg_response_time_ms = float(
        await scalar(func.avg(APIAccessLog.duration_ms), extra=(APIAccessLog.duration_ms.isnot(None),)) or 0
    )
    error_count = await scalar(func.count(APIAccessLog.id), extra=(APIAccessLog.status_code >= 400,)) or 0
    denied_requests = await scalar(func.count(APIAccessLog.id), extra=(APIAccessLog.status_code == 403,)) or 0

    top_endpoints = await db.execute(
        select(APIAccessLog.endpoint, func.count(APIAccessLog.id).label('count'))
        .filter(since)
        .group_by(APIAccessLog.endpoint)
        .order_by(desc('count'))
        .limit(10)
    )
    by_status = await db.execute(
        select(APIAccessLog.status_code, func.count(APIAccessLog.id)).filter(since).group_by(APIAccessLog.status_code)
    )

    return LogAnalytics(
        total_requests=total_requests,
        unique_users=unique_users,
        avg_response_time_ms=round(avg_response_time_ms, 2),
        error_rate=round((error_count / total_requests * 100) if total_requests else 0, 2),
        denied_requests=denied_requests,
        top_endpoints=[{"endpoint": endpoint, "count": count} for endpoint, count in top_endpoints.all()],
        requests_by_status={code: count for code, count in by_status.all()},
    )
