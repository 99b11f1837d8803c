import inspect
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.db.session import SessionAsync
from app.models.user import User
from app.core.config import settings
from app.core.exceptions import AuthenticationRequired
from app.core.security import decode_access_token
from app.core.authorization import AuthorizationGate, Principal, Requirement, SuperuserBypassRule
from app.core.permissions import Action, action_from_method
from app.services.permission_resolver import EffectivePermissionResolver
from app.stores.access import SqlAccessStore

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/auth/token",
    description="Authenticate with email and password",
    auto_error=False,
)


async def get_db():
    async with SessionAsync() as session:
        yield session


async def get_redis():
    redis = aioredis.from_url(settings.REDIS_URL)
    try:
        yield redis
    finally:
        await redis.aclose()


async def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    if not token:
        raise AuthenticationRequired()
    try:
        payload = decode_access_token(token)
        user_id = payload.get("sub")
        tv = payload.get("tv")
        if user_id is None or tv is None:
            raise AuthenticationRequired("Invalid credentials")
    except JWTError:
        raise AuthenticationRequired("Invalid credentials")

    result = await db.execute(select(User).where(User.id == int(user_id)))
    user = result.scalar_one_or_none()
    if not user or not user.is_active or int(tv) != int(user.token_version or 1):
        raise AuthenticationRequired("Invalid credentials")

    request.state.user = user
    # plain id for the access log; the ORM instance may be expired after a rollback
    request.state.user_id = user.id
    return user


# ==================== Permission Dependencies ====================

def get_resolver(db: AsyncSession = Depends(get_db)) -> EffectivePermissionResolver:
    return EffectivePermissionResolver(SqlAccessStore(db))


def get_superuser_rule() -> SuperuserBypassRule:
    return SuperuserBypassRule(role=settings.SUPERUSER_ROLE, enabled=settings.SUPERUSER_BYPASS_ENABLED)


def get_gate(
    resolver: EffectivePermissionResolver = Depends(get_resolver),
    superuser_rule: SuperuserBypassRule = Depends(get_superuser_rule),
) -> AuthorizationGate:
    return AuthorizationGate(resolver, superuser_rule)


PermissionCheck = Union[Tuple[str, Optional[Action]], Tuple[str]]


def _requirements_for(request: Request, checks: Sequence[PermissionCheck]) -> List[Requirement]:
    requirements = []
    for check in checks:
        name = check[0]
        action = check[1] if len(check) > 1 and check[1] else action_from_method(request.method)
        requirements.append(Requirement.of(name, action))
    return requirements


def require_permission(permission_name: str, action: Optional[Action] = None):
    """
    Factory to create a dependency that checks one (permission, action) pair.

    When `action` is None it is derived from the request verb
    (GET->view, POST->create, PUT/PATCH->edit, DELETE->delete).

    Usage:
        @router.delete("/{group_id}")
        async def delete_group(
            group_id: int,
            current_user: User = Depends(require_permission("user-groups", Action.DELETE)),
        ):
            ...

    Returns:
        Dependency resolving to the authenticated User
    """
    async def permission_checker(
        request: Request,
        current_user: User = Depends(get_current_user),
        gate: AuthorizationGate = Depends(get_gate),
    ) -> User:
        required = action or action_from_method(request.method)
        decision = await gate.enforce(Principal.from_user(current_user), permission_name, required)
        request.state.permission = decision.metadata()[0]
        return current_user

    return permission_checker


def require_all_permissions(checks: Sequence[PermissionCheck]):
    """
    Dependency requiring ALL listed permissions.

    A denial names every unmet `name:action` pair.
    """
    async def permission_checker(
        request: Request,
        current_user: User = Depends(get_current_user),
        gate: AuthorizationGate = Depends(get_gate),
    ) -> User:
        decision = await gate.enforce_all(Principal.from_user(current_user), _requirements_for(request, checks))
        request.state.permissions = decision.metadata()
        return current_user

    return permission_checker


def require_any_permission(checks: Sequence[PermissionCheck]):
    """
    Dependency requiring ANY of the listed permissions.

    Stops at the first satisfied requirement.
    """
    async def permission_checker(
        request: Request,
        current_user: User = Depends(get_current_user),
        gate: AuthorizationGate = Depends(get_gate),
    ) -> User:
        decision = await gate.enforce_any(Principal.from_user(current_user), _requirements_for(request, checks))
        request.state.permissions = decision.metadata()
        request.state.granted_permission = next((m for m in request.state.permissions if m["granted"]), None)
        return current_user

    return permission_checker


def require_permission_if(
    condition: Callable[[Request, User], Any],
    permission_name: str,
    action: Optional[Action] = None,
):
    """
    Check a permission only when `condition(request, current_user)` is true.

    The condition may be sync or async.

    Usage:
        # only enforce when the caller is reading someone else's record
        require_permission_if(
            lambda request, user: int(request.path_params["user_id"]) != user.id,
            "users",
        )
    """
    async def permission_checker(
        request: Request,
        current_user: User = Depends(get_current_user),
        gate: AuthorizationGate = Depends(get_gate),
    ) -> User:
        should_check = condition(request, current_user)
        if inspect.isawaitable(should_check):
            should_check = await should_check
        if not should_check:
            return current_user

        required = action or action_from_method(request.method)
        decision = await gate.enforce(Principal.from_user(current_user), permission_name, required)
        request.state.permission = {**decision.metadata()[0], "conditional": True}
        return current_user

    return permission_checker
