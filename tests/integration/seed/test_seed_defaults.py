"""
Integration tests for default data seeding (python -m app.seed).
"""

import pytest
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.permission import Permission
from app.models.user import User
from app.models.user_group import UserGroup
from app.seed.defaults import DEFAULT_GROUPS, DEFAULT_PERMISSIONS, seed_all


async def count(session_factory, model) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count(model.id)))).scalar()


@pytest.fixture
def super_admin_settings(monkeypatch):
    monkeypatch.setattr(settings, "SUPER_ADMIN_EMAIL", "owner@example.com")
    monkeypatch.setattr(settings, "SUPER_ADMIN_PASSWORD", "OwnerPass123!")


@pytest.mark.asyncio
class TestSeed:

    async def test_seeds_defaults(self, db_session: AsyncSession, session_factory, super_admin_settings):
        await seed_all(db_session)

        assert await count(session_factory, Permission) == len(DEFAULT_PERMISSIONS)
        assert await count(session_factory, UserGroup) == len(DEFAULT_GROUPS)

        async with session_factory() as session:
            owner = (await session.execute(select(User).filter(User.email == "owner@example.com"))).scalar_one()
            assert owner.role == "super_admin"

            group = (await session.execute(
                select(UserGroup).filter(UserGroup.name == "Content Manager")
            )).scalar_one()
            entries = {entry.permission.name: entry.granted_actions for entry in group.permissions}
            assert entries["blogs"] == ["create", "delete", "edit", "view"]
            assert entries["dashboard"] == ["view"]

    async def test_is_idempotent(self, db_session: AsyncSession, session_factory, super_admin_settings):
        await seed_all(db_session)
        await seed_all(db_session)

        assert await count(session_factory, Permission) == len(DEFAULT_PERMISSIONS)
        assert await count(session_factory, UserGroup) == len(DEFAULT_GROUPS)
        assert await count(session_factory, User) == 1

    async def test_keeps_existing_rows(self, db_session: AsyncSession, session_factory):
        db_session.add(Permission(name="blogs", route="/custom-blogs", module="custom"))
        await db_session.commit()

        await seed_all(db_session)

        async with session_factory() as session:
            blogs = (await session.execute(select(Permission).filter(Permission.name == "blogs"))).scalar_one()
            assert blogs.route == "/custom-blogs"

    async def test_skips_super_admin_without_credentials(self, db_session: AsyncSession, session_factory, monkeypatch):
        monkeypatch.setattr(settings, "SUPER_ADMIN_EMAIL", None)

        await seed_all(db_session)

        assert await count(session_factory, User) == 0

    async def test_every_group_references_a_default_permission(self):
        names = {permission["name"] for permission in DEFAULT_PERMISSIONS}
        for group in DEFAULT_GROUPS:
            assert set(group["permissions"]) <= names, group["name"]
