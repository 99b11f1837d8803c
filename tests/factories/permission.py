"""
Permission factory for test data generation.
"""

import factory
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.permission import Permission


class PermissionFactory(factory.Factory):
    """Factory for Permission model. Names are unique per sequence."""

    class Meta:
        model = Permission

    name = factory.Sequence(lambda n: f"permission-{n}")
    route = factory.LazyAttribute(lambda o: f"/{o.name}")
    description = factory.Faker("sentence")
    module = "general"
    is_active = True

    @classmethod
    async def create_async(cls, db_session: AsyncSession, **kwargs) -> Permission:
        instance = cls.build(**kwargs)
        db_session.add(instance)
        await db_session.flush()
        return instance
