"""
Admin user management: creation with initial access, updates and cascading delete.
"""

from typing import List, Optional, Sequence, Tuple

from sqlalchemy import select, func, or_, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import AuthorizationDenied, Conflict, InvalidInput
from app.core.logging import get_logger
from app.core.security import get_password_hash
from app.db.unit_of_work import run_in_transaction
from app.models.user import User
from app.models.user_group import UserGroup
from app.models.user_group_member import UserGroupMember
from app.models.user_permission import UserPermission
from app.services.access_control import (
    GrantEntries,
    normalize_entries,
    get_active_permissions,
    get_user,
    list_direct_grants,
    list_user_memberships,
)

logger = get_logger(__name__)

DEFAULT_ROLE = "admin"


async def _email_taken(db: AsyncSession, email: str, exclude_id: Optional[int] = None) -> bool:
    query = select(User.id).filter(func.lower(User.email) == email.lower())
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return (await db.execute(query)).first() is not None


async def create_user_with_access(
    db: AsyncSession,
    name: str,
    email: str,
    password: str,
    entries: GrantEntries = (),
    group_ids: Sequence[int] = (),
) -> Tuple[User, int, int]:
    """
    Create a user with its initial direct grants and group memberships.

    Everything is written in one transaction; any invalid permission or group
    aborts the whole creation. New users always get the admin role; super
    admins are only created by seeding.

    Returns:
        (user, permissions_assigned, groups_assigned)
    """
    normalized = normalize_entries(entries)
    group_ids = list(dict.fromkeys(group_ids))
    hashed = get_password_hash(password)

    async def work(session: AsyncSession) -> Tuple[User, int, int]:
        if await _email_taken(session, email):
            raise Conflict("Email already exists")

        permissions = await get_active_permissions(session, [pid for pid, _ in normalized])
        groups = []
        if group_ids:
            result = await session.execute(
                select(UserGroup).filter(UserGroup.id.in_(group_ids), UserGroup.is_active.is_(True))
            )
            found = {group.id: group for group in result.scalars().all()}
            missing = [str(gid) for gid in group_ids if gid not in found]
            if missing:
                raise InvalidInput(f"Invalid or inactive groups: {', '.join(missing)}")
            groups = [found[gid] for gid in group_ids]

        user = User(name=name, email=email, password=hashed, role=DEFAULT_ROLE)
        session.add(user)
        await session.flush()

        session.add_all(
            UserPermission(user_id=user.id, permission=permissions[pid], granted_actions=actions)
            for pid, actions in normalized
        )
        session.add_all(UserGroupMember(user_id=user.id, group_id=group.id) for group in groups)
        await session.flush()
        return user, len(normalized), len(groups)

    user, permissions_assigned, groups_assigned = await run_in_transaction(db, work)
    logger.info(
        f"User {user.email} created with {permissions_assigned} permissions and {groups_assigned} groups"
    )
    return user, permissions_assigned, groups_assigned


async def list_users(
    db: AsyncSession,
    skip: int = 0,
    limit: int = 10,
    search: Optional[str] = None,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> Tuple[List[User], int]:
    query = select(User)
    filters = []
    if search:
        pattern = f"%{search}%"
        filters.append(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    if role:
        filters.append(User.role == role)
    if is_active is not None:
        filters.append(User.is_active.is_(is_active))
    if filters:
        query = query.filter(*filters)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(query.order_by(User.created_at.desc(), User.id.desc()).offset(skip).limit(limit))
    return list(result.scalars().all()), total


async def get_user_detail(db: AsyncSession, user_id: int) -> Tuple[User, List[UserPermission], List[UserGroupMember]]:
    user = await get_user(db, user_id)
    grants = await list_direct_grants(db, user_id)
    memberships = await list_user_memberships(db, user_id)
    return user, grants, memberships


async def update_user(db: AsyncSession, user_id: int, actor: User, **changes) -> User:
    """
    Update profile fields. A new password bumps token_version so every
    previously issued token stops working.

    Only a superuser may change a role.
    """
    changes = {key: value for key, value in changes.items() if value is not None}
    if "role" in changes and actor.role != settings.SUPERUSER_ROLE:
        raise AuthorizationDenied("Only a super admin can change user roles")
    password = changes.pop("password", None)
    hashed = get_password_hash(password) if password else None

    async def work(session: AsyncSession) -> User:
        user = await get_user(session, user_id)
        if "email" in changes and changes["email"].lower() != user.email.lower():
            if await _email_taken(session, changes["email"], exclude_id=user_id):
                raise Conflict("Email already exists")
        for key, value in changes.items():
            setattr(user, key, value)
        if hashed:
            user.password = hashed
            user.token_version = (user.token_version or 1) + 1
        await session.flush()
        return user

    return await run_in_transaction(db, work)


async def delete_user(db: AsyncSession, user_id: int) -> None:
    """Delete a user with all its direct grants and memberships."""
    async def work(session: AsyncSession) -> None:
        user = await get_user(session, user_id)
        if user.role == settings.SUPERUSER_ROLE:
            raise Conflict("Cannot delete a super admin user")
        await session.execute(delete(UserPermission).where(UserPermission.user_id == user_id))
        await session.execute(delete(UserGroupMember).where(UserGroupMember.user_id == user_id))
        await session.delete(user)

    await run_in_transaction(db, work)
    logger.info(f"User {user_id} deleted with its grants and memberships")
