"""
Access Logging Middleware

Logs all API requests to database for audit trail and analytics.
Records who called, which permission requirement let the call through,
status and duration.
"""

import time
import uuid
import hashlib
import logging
from typing import Callable, Optional
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
from sqlalchemy.exc import SQLAlchemyError

from app.db.session import SessionAsync
from app.models.api_access_log import APIAccessLog

logger = logging.getLogger(__name__)

SKIPPED_PATHS = ("/", "/health", "/docs", "/redoc", "/openapi.json")


def granted_permission(request: Request) -> Optional[str]:
    """Render request.state.permission(s), set by the permission dependencies, as 'name:action' text."""
    single = getattr(request.state, "permission", None)
    if single:
        return f"{single['name']}:{single['action']}"
    many = getattr(request.state, "permissions", None)
    if many:
        return ", ".join(f"{m['name']}:{m['action']}" for m in many if m.get("granted"))[:255] or None
    return None


class AccessLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log all API access to database.

    Captures:
    - User context (user_id, set by get_current_user)
    - The permission requirement(s) granted by the authorization gate
    - Request details (endpoint, method, IP, user agent)
    - Performance metrics (duration, response size)
    """

    def __init__(self, app: ASGIApp, enabled: bool = True, session_factory=None):
        """
        Args:
            app: FastAPI application
            enabled: Whether logging is enabled (can be disabled in tests)
            session_factory: async session factory, SessionAsync by default
        """
        super().__init__(app)
        self.enabled = enabled
        self.session_factory = session_factory or SessionAsync

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.enabled or request.url.path in SKIPPED_PATHS:
            return await call_next(request)

        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.time()

        # Hash request body for audit (don't store full body for privacy)
        request_body_hash = None
        if request.method in ["POST", "PUT", "PATCH"]:
            body = await request.body()
            if body:
                request_body_hash = hashlib.sha256(body).hexdigest()

        response = await call_next(request)

        duration_ms = int((time.time() - start_time) * 1000)

        # Populated by the auth and permission dependencies while handling the request
        user_id = getattr(request.state, "user_id", None)

        await self._log_to_database(
            user_id=user_id,
            endpoint=request.url.path,
            method=request.method,
            status_code=response.status_code,
            permission=granted_permission(request),
            ip_address=self._get_client_ip(request),
            user_agent=request.headers.get("user-agent", ""),
            request_id=request_id,
            duration_ms=duration_ms,
            request_body_hash=request_body_hash,
            response_size=int(response.headers.get("content-length", 0)),
        )

        response.headers["X-Request-ID"] = request_id
        return response

    def _get_client_ip(self, request: Request) -> str:
        """
        Extract client IP address from request.

        Checks X-Forwarded-For header first (for proxied requests),
        then falls back to direct client IP.
        """
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        if request.client:
            return request.client.host

        return "unknown"

    async def _log_to_database(self, **fields):
        """
        Persist one APIAccessLog row in its own session.

        A logging failure never fails the request.
        """
        try:
            async with self.session_factory() as db:
                db.add(APIAccessLog(**fields))
                await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Database logging failed: {e}", exc_info=True)
