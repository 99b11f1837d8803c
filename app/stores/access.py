"""
Read-side store used by the effective permission resolver.

The resolver only needs two joined reads: a user's direct grants and the
grants reaching the user through group membership. Both are expressed by the
AccessStore protocol so the resolver can run against the SQL store in the app
and against in-memory fakes in tests.
"""

from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import StoreFailure
from app.core.logging import get_logger
from app.models.permission import Permission
from app.models.user_group import UserGroup, UserGroupPermission
from app.models.user_group_member import UserGroupMember
from app.models.user_permission import UserPermission

logger = get_logger(__name__)

SOURCE_INDIVIDUAL = "individual"
SOURCE_GROUP = "group"


@dataclass(frozen=True)
class GrantRow:
    """One grant of an action set on a permission, joined with the permission."""
    permission_id: int
    permission_name: str
    module: str
    route: str
    granted_actions: Tuple[str, ...]
    source: str = SOURCE_INDIVIDUAL
    group_name: Optional[str] = None


class AccessStore(Protocol):
    """
    Contract of the resolver's data source.

    Both reads return only rows whose permission is active; group rows only
    for active groups the user is a member of. A permission_name narrows the
    result to that permission. Read failures raise, never return [].
    """

    async def list_direct_grants(self, user_id: int, permission_name: Optional[str] = None) -> List[GrantRow]:
        ...

    async def list_group_grants(self, user_id: int, permission_name: Optional[str] = None) -> List[GrantRow]:
        ...


class SqlAccessStore:
    """AccessStore over the SQLAlchemy models."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_direct_grants(self, user_id: int, permission_name: Optional[str] = None) -> List[GrantRow]:
        query = (
            select(UserPermission, Permission)
            .join(Permission, Permission.id == UserPermission.permission_id)
            .filter(
                UserPermission.user_id == user_id,
                Permission.is_active.is_(True),
            )
            .order_by(UserPermission.id)
        )
        if permission_name:
            query = query.filter(Permission.name == permission_name.strip().lower())

        rows = await self._fetch(query)
        return [
            GrantRow(
                permission_id=permission.id,
                permission_name=permission.name,
                module=permission.module,
                route=permission.route,
                granted_actions=tuple(grant.granted_actions or ()),
                source=SOURCE_INDIVIDUAL,
            )
            for grant, permission in rows
        ]

    async def list_group_grants(self, user_id: int, permission_name: Optional[str] = None) -> List[GrantRow]:
        query = (
            select(UserGroupPermission, UserGroup, Permission)
            .join(UserGroup, UserGroup.id == UserGroupPermission.group_id)
            .join(UserGroupMember, UserGroupMember.group_id == UserGroup.id)
            .join(Permission, Permission.id == UserGroupPermission.permission_id)
            .filter(
                UserGroupMember.user_id == user_id,
                UserGroup.is_active.is_(True),
                Permission.is_active.is_(True),
            )
            .order_by(UserGroup.name, UserGroupPermission.id)
        )
        if permission_name:
            query = query.filter(Permission.name == permission_name.strip().lower())

        rows = await self._fetch(query)
        return [
            GrantRow(
                permission_id=permission.id,
                permission_name=permission.name,
                module=permission.module,
                route=permission.route,
                granted_actions=tuple(entry.granted_actions or ()),
                source=SOURCE_GROUP,
                group_name=group.name,
            )
            for entry, group, permission in rows
        ]

    async def _fetch(self, query):
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as e:
            logger.error(f"Access store read failed: {e}", exc_info=True)
            raise StoreFailure("Could not read permissions") from e
        return result.all()
