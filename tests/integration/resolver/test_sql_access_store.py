"""
Integration tests for the effective permission resolver over SqlAccessStore.

The in-memory store used by the unit tests and the SQL store must agree on
which rows count: inactive permissions and inactive groups never do.
"""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.authorization import AuthorizationGate, Principal
from app.services.permission_resolver import EffectivePermissionResolver
from app.stores.access import SqlAccessStore
from tests.factories import (
    PermissionFactory,
    UserFactory,
    UserGroupFactory,
    UserGroupMemberFactory,
    UserPermissionFactory,
)


@pytest.fixture
async def billing_setup(db_session: AsyncSession):
    """
    User with direct billing:create, an Editors group granting billing:edit,
    and an inactive Archive group granting billing:delete.
    """
    user = await UserFactory.create_async(db_session)
    billing = await PermissionFactory.create_async(db_session, name="billing", module="finance")
    await UserPermissionFactory.create_async(
        db_session, user_id=user.id, permission_id=billing.id, granted_actions=["create"]
    )
    editors = await UserGroupFactory.create_async(db_session, name="Editors", entries={billing.id: ["edit"]})
    archive = await UserGroupFactory.create_async(
        db_session, name="Archive", is_active=False, entries={billing.id: ["delete"]}
    )
    await UserGroupMemberFactory.create_async(db_session, user_id=user.id, group_id=editors.id)
    await UserGroupMemberFactory.create_async(db_session, user_id=user.id, group_id=archive.id)
    await db_session.commit()
    return user, billing


@pytest.mark.asyncio
class TestSqlResolver:

    async def test_union_of_direct_and_active_groups(self, db_session: AsyncSession, billing_setup):
        user, billing = billing_setup
        resolver = EffectivePermissionResolver(SqlAccessStore(db_session))

        [permission] = await resolver.resolve(user.id)

        assert permission.permission_name == "billing"
        assert permission.permission_id == billing.id
        assert permission.module == "finance"
        assert permission.granted_actions == ["create", "edit", "view"]
        assert [(source.type, source.group_name) for source in permission.sources] == [
            ("individual", None),
            ("group", "Editors"),
        ]

    async def test_resolve_actions_by_name(self, db_session: AsyncSession, billing_setup):
        user, _ = billing_setup
        resolver = EffectivePermissionResolver(SqlAccessStore(db_session))

        assert await resolver.resolve_actions(user.id, "Billing") == ["create", "edit", "view"]
        assert await resolver.resolve_actions(user.id, "reports") == []

    async def test_inactive_permission_contributes_nothing(self, db_session: AsyncSession, billing_setup):
        user, billing = billing_setup
        billing.is_active = False
        await db_session.commit()

        resolver = EffectivePermissionResolver(SqlAccessStore(db_session))

        assert await resolver.resolve(user.id) == []

    async def test_unknown_user_has_nothing(self, db_session: AsyncSession):
        resolver = EffectivePermissionResolver(SqlAccessStore(db_session))

        assert await resolver.resolve(424242) == []

    async def test_gate_over_sql_store(self, db_session: AsyncSession, billing_setup):
        user, _ = billing_setup
        gate = AuthorizationGate(EffectivePermissionResolver(SqlAccessStore(db_session)))
        principal = Principal.from_user(user)

        assert (await gate.authorize(principal, "billing", "edit")).allowed
        denied = await gate.authorize(principal, "billing", "delete")
        assert not denied.allowed
        assert denied.reason == "Access denied. Required permission: billing:delete"
