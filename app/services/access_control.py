"""
Access-control write operations.

Permissions, direct grants, groups and group memberships. Every multi-row
write runs in one unit of work (app/db/unit_of_work.py) and every action set
passes through normalize_actions before it is persisted, whichever path it
comes from.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import select, func, or_, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import Conflict, InvalidInput, NotFound
from app.core.logging import get_logger
from app.core.permissions import normalize_actions, action_values
from app.db.unit_of_work import run_in_transaction
from app.models.permission import Permission
from app.models.user import User
from app.models.user_group import UserGroup, UserGroupPermission
from app.models.user_group_member import UserGroupMember
from app.models.user_permission import UserPermission

logger = get_logger(__name__)

# (permission_id, actions) pairs as accepted by grant and group writes
GrantEntries = Sequence[Tuple[int, Iterable[str]]]


# ==================== Lookups ====================

async def get_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


async def get_permission(db: AsyncSession, permission_id: int) -> Permission:
    permission = await db.get(Permission, permission_id)
    if not permission:
        raise NotFound("Permission not found")
    return permission


async def get_group(db: AsyncSession, group_id: int) -> UserGroup:
    result = await db.execute(select(UserGroup).filter(UserGroup.id == group_id))
    group = result.scalar_one_or_none()
    if not group:
        raise NotFound("Group not found")
    return group


async def get_active_permissions(db: AsyncSession, permission_ids: Iterable[int]) -> Dict[int, Permission]:
    """
    Load active permissions by id.

    Raises:
        InvalidInput: naming every id that is missing or inactive
    """
    permission_ids = list(permission_ids)
    if not permission_ids:
        return {}

    result = await db.execute(
        select(Permission).filter(Permission.id.in_(permission_ids), Permission.is_active.is_(True))
    )
    found = {permission.id: permission for permission in result.scalars().all()}
    missing = [str(pid) for pid in permission_ids if pid not in found]
    if missing:
        raise InvalidInput(f"Invalid or inactive permissions: {', '.join(missing)}")
    return found


def normalize_entries(entries: GrantEntries) -> List[Tuple[int, List[str]]]:
    """Validate (permission_id, actions) pairs and apply the view invariant."""
    seen = set()
    normalized = []
    for permission_id, actions in entries:
        if permission_id in seen:
            raise InvalidInput(f"Duplicate permission entry: {permission_id}")
        seen.add(permission_id)
        normalized.append((permission_id, action_values(normalize_actions(actions))))
    return normalized


# ==================== Permissions ====================

async def list_permissions(
    db: AsyncSession,
    skip: int = 0,
    limit: int = 100,
    search: Optional[str] = None,
    module: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> Tuple[List[Permission], int]:
    query = select(Permission)

    filters = []
    if search:
        pattern = f"%{search}%"
        filters.append(or_(
            Permission.name.ilike(pattern),
            Permission.route.ilike(pattern),
            Permission.description.ilike(pattern),
            Permission.module.ilike(pattern),
        ))
    if module:
        filters.append(Permission.module == module.strip().lower())
    if is_active is not None:
        filters.append(Permission.is_active.is_(is_active))
    if filters:
        query = query.filter(*filters)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(query.order_by(Permission.module, Permission.name).offset(skip).limit(limit))
    return list(result.scalars().all()), total


async def create_permission(
    db: AsyncSession,
    name: str,
    route: str,
    module: str,
    description: Optional[str] = None,
    is_active: bool = True,
) -> Permission:
    name = name.strip().lower()

    async def work(session: AsyncSession) -> Permission:
        existing = await session.execute(select(Permission.id).filter(Permission.name == name))
        if existing.first():
            raise Conflict("Permission already exists")
        permission = Permission(name=name, route=route, module=module, description=description, is_active=is_active)
        session.add(permission)
        await session.flush()
        return permission

    permission = await run_in_transaction(db, work)
    logger.info(f"Permission '{permission.name}' created (module={permission.module})")
    return permission


async def update_permission(db: AsyncSession, permission_id: int, **changes) -> Permission:
    changes = {key: value for key, value in changes.items() if value is not None}
    for key in ("name", "module"):
        if key in changes:
            changes[key] = changes[key].strip().lower()
            if not changes[key]:
                raise InvalidInput(f"Permission {key} must not be blank")

    async def work(session: AsyncSession) -> Permission:
        permission = await get_permission(session, permission_id)
        new_name = changes.get("name")
        if new_name and new_name != permission.name:
            clash = await session.execute(
                select(Permission.id).filter(Permission.name == new_name, Permission.id != permission_id)
            )
            if clash.first():
                raise Conflict("Permission name already exists")
        for key, value in changes.items():
            setattr(permission, key, value)
        await session.flush()
        return permission

    return await run_in_transaction(db, work)


async def set_permission_active(db: AsyncSession, permission_id: int, active: bool) -> Permission:
    """
    Activate or deactivate a permission.

    Stored grants and group entries are left untouched; the resolver simply
    stops (or resumes) counting them.
    """
    async def work(session: AsyncSession) -> Permission:
        permission = await get_permission(session, permission_id)
        if permission.is_active == active:
            raise InvalidInput(f"Permission is already {'active' if active else 'inactive'}")
        permission.is_active = active
        await session.flush()
        return permission

    permission = await run_in_transaction(db, work)
    logger.info(f"Permission '{permission.name}' {'activated' if active else 'deactivated'}")
    return permission


async def delete_permission(db: AsyncSession, permission_id: int) -> None:
    """Delete a permission nobody references. Referenced permissions raise Conflict."""
    async def work(session: AsyncSession) -> None:
        permission = await get_permission(session, permission_id)
        grants = (await session.execute(
            select(func.count(UserPermission.id)).filter(UserPermission.permission_id == permission_id)
        )).scalar() or 0
        groups = (await session.execute(
            select(func.count(func.distinct(UserGroupPermission.group_id))).filter(
                UserGroupPermission.permission_id == permission_id
            )
        )).scalar() or 0
        if grants or groups:
            raise Conflict(
                f"Cannot delete permission '{permission.name}': "
                f"assigned to {grants} user(s) and {groups} group(s). Deactivate it instead."
            )
        await session.delete(permission)

    await run_in_transaction(db, work)
    logger.info(f"Permission {permission_id} deleted")


# ==================== Direct grants ====================

async def _find_grant(db: AsyncSession, user_id: int, permission_id: int) -> Optional[UserPermission]:
    result = await db.execute(
        select(UserPermission).filter(
            UserPermission.user_id == user_id,
            UserPermission.permission_id == permission_id,
        )
    )
    return result.scalar_one_or_none()


async def grant_direct(
    db: AsyncSession,
    user_id: int,
    permission_id: int,
    actions: Iterable[str],
) -> Tuple[UserPermission, bool]:
    """
    Idempotent upsert of a direct grant keyed by (user_id, permission_id).

    Returns:
        (grant, created) - created is False when an existing grant was replaced
    """
    granted = action_values(normalize_actions(actions))

    async def work(session: AsyncSession) -> Tuple[UserPermission, bool]:
        await get_user(session, user_id)
        permission = await session.get(Permission, permission_id)
        if not permission or not permission.is_active:
            raise NotFound("Permission not found or inactive")

        grant = await _find_grant(session, user_id, permission_id)
        if grant is None:
            grant = UserPermission(user_id=user_id, permission=permission, granted_actions=granted)
            try:
                async with session.begin_nested():
                    session.add(grant)
                return grant, True
            except IntegrityError:
                # a concurrent request inserted the same grant first
                grant = await _find_grant(session, user_id, permission_id)
                if grant is None:
                    raise
        grant.granted_actions = granted
        await session.flush()
        return grant, False

    grant, created = await run_in_transaction(db, work)
    logger.info(f"{'Granted' if created else 'Updated'} {grant.granted_actions} on permission {permission_id} to user {user_id}")
    return grant, created


async def update_direct_grant(
    db: AsyncSession,
    user_id: int,
    permission_id: int,
    actions: Iterable[str],
) -> UserPermission:
    granted = action_values(normalize_actions(actions))

    async def work(session: AsyncSession) -> UserPermission:
        grant = await _find_grant(session, user_id, permission_id)
        if not grant:
            raise NotFound("User permission not found")
        grant.granted_actions = granted
        await session.flush()
        return grant

    return await run_in_transaction(db, work)


async def revoke_direct(db: AsyncSession, user_id: int, permission_id: int) -> None:
    async def work(session: AsyncSession) -> None:
        grant = await _find_grant(session, user_id, permission_id)
        if not grant:
            raise NotFound("User permission not found")
        await session.delete(grant)

    await run_in_transaction(db, work)
    logger.info(f"Revoked permission {permission_id} from user {user_id}")


async def list_direct_grants(db: AsyncSession, user_id: int, module: Optional[str] = None) -> List[UserPermission]:
    """A user's direct grants on active permissions, optionally for one module."""
    await get_user(db, user_id)
    query = (
        select(UserPermission)
        .join(Permission, Permission.id == UserPermission.permission_id)
        .filter(UserPermission.user_id == user_id, Permission.is_active.is_(True))
        .order_by(Permission.module, Permission.name)
    )
    if module:
        query = query.filter(Permission.module == module.strip().lower())
    result = await db.execute(query)
    return list(result.scalars().all())


async def bulk_assign_direct(db: AsyncSession, user_id: int, entries: GrantEntries) -> List[UserPermission]:
    """Replace every direct grant of a user with `entries`, atomically."""
    normalized = normalize_entries(entries)

    async def work(session: AsyncSession) -> List[UserPermission]:
        await get_user(session, user_id)
        permissions = await get_active_permissions(session, [pid for pid, _ in normalized])

        await session.execute(delete(UserPermission).where(UserPermission.user_id == user_id))
        grants = [
            UserPermission(user_id=user_id, permission=permissions[pid], granted_actions=actions)
            for pid, actions in normalized
        ]
        session.add_all(grants)
        await session.flush()
        return grants

    grants = await run_in_transaction(db, work)
    logger.info(f"Bulk-assigned {len(grants)} permissions to user {user_id}")
    return grants


# ==================== Groups ====================

async def _apply_group_entries(session: AsyncSession, group: UserGroup, normalized: List[Tuple[int, List[str]]]) -> None:
    permissions = await get_active_permissions(session, [pid for pid, _ in normalized])
    # Old rows must be gone before re-inserting the same (group, permission) keys
    group.permissions.clear()
    await session.flush()
    group.permissions.extend(
        UserGroupPermission(permission=permissions[pid], granted_actions=actions)
        for pid, actions in normalized
    )


async def count_members(db: AsyncSession, group_ids: Sequence[int]) -> Dict[int, int]:
    if not group_ids:
        return {}
    result = await db.execute(
        select(UserGroupMember.group_id, func.count(UserGroupMember.id))
        .filter(UserGroupMember.group_id.in_(group_ids))
        .group_by(UserGroupMember.group_id)
    )
    counts = {group_id: count for group_id, count in result.all()}
    return {group_id: counts.get(group_id, 0) for group_id in group_ids}


async def list_groups(
    db: AsyncSession,
    skip: int = 0,
    limit: int = 10,
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> Tuple[List[UserGroup], Dict[int, int], int]:
    query = select(UserGroup)
    filters = []
    if search:
        pattern = f"%{search}%"
        filters.append(or_(UserGroup.name.ilike(pattern), UserGroup.description.ilike(pattern)))
    if is_active is not None:
        filters.append(UserGroup.is_active.is_(is_active))
    if filters:
        query = query.filter(*filters)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(query.order_by(UserGroup.name).offset(skip).limit(limit))
    groups = list(result.scalars().all())
    return groups, await count_members(db, [group.id for group in groups]), total


async def get_group_detail(db: AsyncSession, group_id: int, recent: int = 5) -> Tuple[UserGroup, int, List[UserGroupMember]]:
    group = await get_group(db, group_id)
    member_count = (await count_members(db, [group_id]))[group_id]
    result = await db.execute(
        select(UserGroupMember)
        .filter(UserGroupMember.group_id == group_id)
        .order_by(UserGroupMember.assigned_at.desc(), UserGroupMember.id.desc())
        .limit(recent)
    )
    return group, member_count, list(result.scalars().all())


async def create_group(
    db: AsyncSession,
    name: str,
    description: Optional[str] = None,
    entries: GrantEntries = (),
) -> UserGroup:
    name = name.strip()
    normalized = normalize_entries(entries)

    async def work(session: AsyncSession) -> UserGroup:
        existing = await session.execute(select(UserGroup.id).filter(UserGroup.name == name))
        if existing.first():
            raise Conflict("Group name already exists")
        group = UserGroup(name=name, description=description, permissions=[])
        session.add(group)
        await _apply_group_entries(session, group, normalized)
        await session.flush()
        return group

    group = await run_in_transaction(db, work)
    logger.info(f"Group '{group.name}' created with {len(group.permissions)} permission entries")
    return group


async def update_group(
    db: AsyncSession,
    group_id: int,
    name: Optional[str] = None,
    description: Optional[str] = None,
    entries: Optional[GrantEntries] = None,
) -> UserGroup:
    normalized = normalize_entries(entries) if entries is not None else None

    async def work(session: AsyncSession) -> UserGroup:
        group = await get_group(session, group_id)
        if name is not None and name.strip() != group.name:
            clash = await session.execute(
                select(UserGroup.id).filter(UserGroup.name == name.strip(), UserGroup.id != group_id)
            )
            if clash.first():
                raise Conflict("Group name already exists")
            group.name = name
        if description is not None:
            group.description = description
        if normalized is not None:
            await _apply_group_entries(session, group, normalized)
        await session.flush()
        return group

    return await run_in_transaction(db, work)


async def set_group_permissions(db: AsyncSession, group_id: int, entries: GrantEntries) -> UserGroup:
    """Full replacement of a group's permission entries."""
    normalized = normalize_entries(entries)

    async def work(session: AsyncSession) -> UserGroup:
        group = await get_group(session, group_id)
        await _apply_group_entries(session, group, normalized)
        await session.flush()
        return group

    group = await run_in_transaction(db, work)
    logger.info(f"Group '{group.name}' permissions replaced ({len(normalized)} entries)")
    return group


async def set_group_active(db: AsyncSession, group_id: int, active: bool) -> UserGroup:
    """
    Activate or deactivate a group.

    Memberships are kept; an inactive group contributes nothing to its
    members' effective permissions.
    """
    async def work(session: AsyncSession) -> UserGroup:
        group = await get_group(session, group_id)
        if group.is_active == active:
            raise InvalidInput(f"Group is already {'active' if active else 'inactive'}")
        group.is_active = active
        await session.flush()
        return group

    group = await run_in_transaction(db, work)
    logger.info(f"Group '{group.name}' {'activated' if active else 'deactivated'}")
    return group


async def delete_group(db: AsyncSession, group_id: int) -> None:
    async def work(session: AsyncSession) -> None:
        group = await get_group(session, group_id)
        members = (await count_members(session, [group_id]))[group_id]
        if members > 0:
            raise Conflict("Cannot delete group with active members. Remove all members first.")
        await session.delete(group)

    await run_in_transaction(db, work)
    logger.info(f"Group {group_id} deleted")


# ==================== Membership ====================

async def _find_membership(db: AsyncSession, user_id: int, group_id: int) -> Optional[UserGroupMember]:
    result = await db.execute(
        select(UserGroupMember).filter(
            UserGroupMember.user_id == user_id,
            UserGroupMember.group_id == group_id,
        )
    )
    return result.scalar_one_or_none()


async def assign_to_group(db: AsyncSession, group_id: int, user_id: int) -> Tuple[UserGroupMember, bool]:
    """
    Idempotently add a user to an active group.

    Returns:
        (membership, created) - created is False when the user already belonged
    """
    async def work(session: AsyncSession) -> Tuple[UserGroupMember, bool]:
        group = await get_group(session, group_id)
        if not group.is_active:
            raise NotFound("Group not found or inactive")
        await get_user(session, user_id)

        existing = await _find_membership(session, user_id, group_id)
        if existing:
            return existing, False

        membership = UserGroupMember(user_id=user_id, group_id=group_id)
        try:
            async with session.begin_nested():
                session.add(membership)
        except IntegrityError:
            # a concurrent request added the same membership first
            existing = await _find_membership(session, user_id, group_id)
            if existing is None:
                raise
            return existing, False
        await session.refresh(membership, ["user", "group"])
        return membership, True

    membership, created = await run_in_transaction(db, work)
    if created:
        logger.info(f"User {user_id} added to group {group_id}")
    return membership, created


async def remove_from_group(db: AsyncSession, group_id: int, user_id: int) -> bool:
    """Idempotently remove a membership. Returns whether a row was removed."""
    async def work(session: AsyncSession) -> bool:
        membership = await _find_membership(session, user_id, group_id)
        if not membership:
            return False
        await session.delete(membership)
        return True

    removed = await run_in_transaction(db, work)
    if removed:
        logger.info(f"User {user_id} removed from group {group_id}")
    return removed


async def list_group_members(
    db: AsyncSession,
    group_id: int,
    skip: int = 0,
    limit: int = 10,
) -> Tuple[List[UserGroupMember], int]:
    await get_group(db, group_id)
    total = (await count_members(db, [group_id]))[group_id]
    result = await db.execute(
        select(UserGroupMember)
        .filter(UserGroupMember.group_id == group_id)
        .order_by(UserGroupMember.assigned_at.desc(), UserGroupMember.id.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def list_user_memberships(db: AsyncSession, user_id: int) -> List[UserGroupMember]:
    """A user's memberships in active groups, newest first."""
    await get_user(db, user_id)
    result = await db.execute(
        select(UserGroupMember)
        .join(UserGroup, UserGroup.id == UserGroupMember.group_id)
        .filter(UserGroupMember.user_id == user_id, UserGroup.is_active.is_(True))
        .order_by(UserGroupMember.assigned_at.desc(), UserGroupMember.id.desc())
    )
    return list(result.scalars().all())
