"""
In-memory AccessStore implementations for resolver and gate tests.

InMemoryAccessStore honours the same contract as SqlAccessStore: inactive
permissions and inactive groups are filtered out, and stored action sets
always include 'view'.
"""

from itertools import count
from typing import Dict, List, Optional

from app.core.exceptions import StoreFailure
from app.core.permissions import action_values, normalize_actions
from app.stores.access import GrantRow, SOURCE_GROUP, SOURCE_INDIVIDUAL


class InMemoryAccessStore:

    def __init__(self):
        self._ids = count(1)
        self.permissions: Dict[str, dict] = {}
        self.direct: List[tuple] = []  # (user_id, permission_name, actions)
        self.groups: Dict[str, dict] = {}
        self.members: List[tuple] = []  # (user_id, group_name)
        self.calls = 0

    # ---- arrange ----

    def add_permission(self, name: str, module: str = "general", route: Optional[str] = None, active: bool = True):
        self.permissions[name] = {
            "id": next(self._ids),
            "module": module,
            "route": route or f"/{name}",
            "active": active,
        }
        return self

    def grant(self, user_id: int, name: str, actions):
        if name not in self.permissions:
            self.add_permission(name)
        self.direct.append((user_id, name, tuple(action_values(normalize_actions(actions)))))
        return self

    def add_group(self, group_name: str, entries: Dict[str, list], active: bool = True):
        for name in entries:
            if name not in self.permissions:
                self.add_permission(name)
        self.groups[group_name] = {
            "active": active,
            "entries": [(name, tuple(action_values(normalize_actions(actions)))) for name, actions in entries.items()],
        }
        return self

    def add_member(self, user_id: int, group_name: str):
        self.members.append((user_id, group_name))
        return self

    # ---- AccessStore ----

    def _row(self, name: str, actions, source: str, group_name: Optional[str] = None) -> GrantRow:
        permission = self.permissions[name]
        return GrantRow(
            permission_id=permission["id"],
            permission_name=name,
            module=permission["module"],
            route=permission["route"],
            granted_actions=actions,
            source=source,
            group_name=group_name,
        )

    def _visible(self, name: str, permission_name: Optional[str]) -> bool:
        if not self.permissions[name]["active"]:
            return False
        return permission_name is None or name == permission_name

    async def list_direct_grants(self, user_id: int, permission_name: Optional[str] = None) -> List[GrantRow]:
        self.calls += 1
        return [
            self._row(name, actions, SOURCE_INDIVIDUAL)
            for uid, name, actions in self.direct
            if uid == user_id and self._visible(name, permission_name)
        ]

    async def list_group_grants(self, user_id: int, permission_name: Optional[str] = None) -> List[GrantRow]:
        self.calls += 1
        rows = []
        for uid, group_name in self.members:
            group = self.groups[group_name]
            if uid != user_id or not group["active"]:
                continue
            rows.extend(
                self._row(name, actions, SOURCE_GROUP, group_name)
                for name, actions in group["entries"]
                if self._visible(name, permission_name)
            )
        return rows


class FailingAccessStore:
    """Every read fails, as when the database is unreachable."""

    def __init__(self):
        self.calls = 0

    async def list_direct_grants(self, user_id: int, permission_name: Optional[str] = None) -> List[GrantRow]:
        self.calls += 1
        raise StoreFailure("Could not read permissions")

    async def list_group_grants(self, user_id: int, permission_name: Optional[str] = None) -> List[GrantRow]:
        self.calls += 1
        raise StoreFailure("Could not read permissions")
