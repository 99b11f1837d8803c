"""
Data factories for test data generation.

Factories use factory-boy to create realistic test data with sensible defaults.
All factories support async creation via create_async() method.

Usage:
    from tests.factories import UserFactory, PermissionFactory

    user = await UserFactory.create_async(db_session, email="custom@test.com")
    blogs = await PermissionFactory.create_async(db_session, name="blogs", module="content")
    await UserPermissionFactory.create_async(
        db_session, user_id=user.id, permission_id=blogs.id, granted_actions=["edit"]
    )
"""

from tests.factories.user import UserFactory
from tests.factories.permission import PermissionFactory
from tests.factories.user_permission import UserPermissionFactory
from tests.factories.user_group import UserGroupFactory, UserGroupMemberFactory

__all__ = [
    "UserFactory",
    "PermissionFactory",
    "UserPermissionFactory",
    "UserGroupFactory",
    "UserGroupMemberFactory",
]
