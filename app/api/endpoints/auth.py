"""
    Authentication Endpoints
    Issues JWT access tokens for admin users and exposes the caller's own
    profile and effective permissions.
    Endpoints:
    - /token: OAuth2 password flow (used by the Swagger "Authorize" button).
    - /login: JSON body alternative to /token.
    - /me: Returns the current authenticated user and a fresh access token.
    - /me/permissions: The caller's effective permissions with their sources.
    Security Features:
    - Login attempts rate-limited per email and client IP through Redis.
    - Uniform error responses to avoid leaking user existence.
    - Token versioning to invalidate old tokens upon password change.
"""
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from app.api.dependencies import get_current_user, get_db, get_redis, get_resolver
from app.core.config import settings
from app.core.exceptions import AuthenticationRequired
from app.core.logging import get_logger
from app.core.security import verify_password, create_access_token
from app.helpers.rate_limit import allow
from app.models.user import User
from app.schemas.auth import Token, Login, MeOut
from app.schemas.user_permission import UserEffectivePermissions
from app.services.permission_resolver import EffectivePermissionResolver

logger = get_logger(__name__)

router = APIRouter()


async def _authenticate(db: AsyncSession, redis: Redis, request: Request, email: str, password: str) -> str:
    client_ip = request.headers.get("x-forwarded-for", request.client.host if request.client else "unknown")
    if not await allow(
        redis, "login", email, client_ip,
        max_attempts=settings.LOGIN_RATE_LIMIT,
        window_sec=settings.LOGIN_RATE_WINDOW_SECONDS,
    ):
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Too many login attempts")

    result = await db.execute(select(User).filter(func.lower(User.email) == email.lower()))
    user = result.scalar_one_or_none()

    if not user or not user.is_active or not verify_password(password, user.password):
        logger.info(f"Failed login for {email} from {client_ip}")
        raise AuthenticationRequired("Invalid email or password")

    user.last_login_at = datetime.now(timezone.utc)
    await db.commit()

    return create_access_token(data={"sub": str(user.id)}, token_version=user.token_version)


@router.post("/token", response_model=Token)
async def oauth2_token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis)
):
    """
    Standard OAuth2 password flow.

    Note: the OAuth2 'username' field carries the user's email.
    """
    access_token = await _authenticate(db, redis, request, form_data.username, form_data.password)
    return {"access_token": access_token, "token_type": "bearer"}


@router.post("/login", response_model=Token)
async def login(
    login_data: Login,
    request: Request,
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis)
):
    """JSON alternative to /token."""
    access_token = await _authenticate(db, redis, request, login_data.email, login_data.password)
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/me", response_model=MeOut)
async def read_me(current_user: User = Depends(get_current_user)):
    access_token = create_access_token(
        data={"sub": str(current_user.id)},
        token_version=current_user.token_version
    )
    return {
        "user": current_user,
        "access_token": access_token,
        "token_type": "bearer"
    }


@router.get("/me/permissions", response_model=UserEffectivePermissions)
async def read_my_permissions(
    current_user: User = Depends(get_current_user),
    resolver: EffectivePermissionResolver = Depends(get_resolver)
):
    """
    The caller's effective permissions.

    Super admins get whatever they were granted explicitly; their bypass is
    applied by the gate, not reflected here.
    """
    permissions = await resolver.resolve(current_user.id)
    return {
        "user_id": current_user.id,
        "permissions": permissions,
        "total_permissions": len(permissions),
        "includes_group_permissions": True,
    }
