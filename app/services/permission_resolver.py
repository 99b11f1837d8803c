"""
Effective permission resolution.

A user's effective permissions are the union, per permission name, of the
actions granted directly and the actions granted by every active group the
user belongs to. Inactive permissions and inactive groups contribute nothing.
Each contributing grant is kept as a source record for traceability; sources
never change the union.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from app.core.logging import get_logger
from app.core.permissions import ALL_ACTIONS, Action
from app.stores.access import AccessStore, GrantRow, SOURCE_GROUP

logger = get_logger(__name__)

ACTION_ORDER = {action.value: index for index, action in enumerate(sorted(ALL_ACTIONS, key=lambda a: a.value))}


@dataclass
class PermissionSource:
    type: str  # 'individual' | 'group'
    actions: List[str]
    group_name: Optional[str] = None


@dataclass
class EffectivePermission:
    permission_name: str
    permission_id: int
    module: str
    route: str
    granted_actions: List[str]
    sources: List[PermissionSource] = field(default_factory=list)

    def allows(self, action) -> bool:
        value = action.value if isinstance(action, Action) else action
        return value in self.granted_actions


class _Accumulator:
    """Per-permission merge state. Actions live in a 4-bit mask over Action."""

    __slots__ = ("row", "mask", "sources")

    def __init__(self, row: GrantRow):
        self.row = row
        self.mask = 0
        self.sources: List[PermissionSource] = []

    def add(self, row: GrantRow) -> None:
        for action in row.granted_actions:
            bit = ACTION_ORDER.get(action)
            if bit is not None:
                self.mask |= 1 << bit
        self.sources.append(PermissionSource(
            type=row.source,
            actions=list(row.granted_actions),
            group_name=row.group_name if row.source == SOURCE_GROUP else None,
        ))

    def actions(self) -> List[str]:
        return [value for value, bit in sorted(ACTION_ORDER.items(), key=lambda item: item[1]) if self.mask & (1 << bit)]

    def build(self) -> EffectivePermission:
        return EffectivePermission(
            permission_name=self.row.permission_name,
            permission_id=self.row.permission_id,
            module=self.row.module,
            route=self.row.route,
            granted_actions=self.actions(),
            sources=self.sources,
        )


def merge_grants(rows: List[GrantRow]) -> List[EffectivePermission]:
    """
    Merge grant rows keyed by permission name.

    Output order follows the first appearance of each permission; action lists
    are sorted and duplicate-free.
    """
    merged: Dict[str, _Accumulator] = {}
    for row in rows:
        accumulator = merged.get(row.permission_name)
        if accumulator is None:
            accumulator = merged[row.permission_name] = _Accumulator(row)
        accumulator.add(row)
    return [accumulator.build() for accumulator in merged.values()]


class EffectivePermissionResolver:
    """
    Computes effective permissions from an AccessStore.

    Read-only and stateless between calls: safe to re-invoke after a timeout.
    Store errors propagate to the caller.

    Usage:
        resolver = EffectivePermissionResolver(SqlAccessStore(db))
        permissions = await resolver.resolve(user.id)
        actions = await resolver.resolve_actions(user.id, "billing")
    """

    def __init__(self, store: AccessStore):
        self.store = store

    async def _rows(self, user_id: int, permission_name: Optional[str]) -> List[GrantRow]:
        direct = await self.store.list_direct_grants(user_id, permission_name)
        grouped = await self.store.list_group_grants(user_id, permission_name)
        return list(direct) + list(grouped)

    async def resolve(self, user_id: int) -> List[EffectivePermission]:
        """All effective permissions of a user (empty list when none)."""
        permissions = merge_grants(await self._rows(user_id, None))
        logger.debug(f"Resolved {len(permissions)} effective permissions for user {user_id}")
        return permissions

    async def resolve_actions(self, user_id: int, permission_name: str) -> List[str]:
        """Granted actions on one permission, [] when the user has none."""
        name = permission_name.strip().lower()
        for permission in merge_grants(await self._rows(user_id, name)):
            if permission.permission_name == name:
                logger.debug(f"User {user_id} holds {permission.granted_actions} on '{name}'")
                return permission.granted_actions
        return []

    async def resolve_module(self, user_id: int, module: str) -> List[EffectivePermission]:
        """Effective permissions restricted to one module tag."""
        module = module.strip().lower()
        return [permission for permission in await self.resolve(user_id) if permission.module == module]

    async def resolve_direct(self, user_id: int) -> List[EffectivePermission]:
        """Effective permissions counting direct grants only, same shape as resolve()."""
        return merge_grants(list(await self.store.list_direct_grants(user_id, None)))
