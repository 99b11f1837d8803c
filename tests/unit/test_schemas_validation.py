"""
Unit tests for Pydantic schemas.

Request validation for permissions, grants, groups and users.
"""

import pytest
from pydantic import ValidationError
from datetime import datetime, timezone

from app.core.permissions import Action
from app.schemas.auth import Login
from app.schemas.permission import PermissionCreate, PermissionUpdate, PermissionGrantIn
from app.schemas.user import UserCreate, UserOut, UserUpdate
from app.schemas.user_group import UserGroupCreate, GroupMemberAdd
from app.schemas.user_permission import UserPermissionAssign, UserPermissionBulkAssign


class TestPermissionSchemas:

    def test_name_and_module_lowercased(self):
        permission = PermissionCreate(name="  Billing ", route="/billing", module="Finance")
        assert permission.name == "billing"
        assert permission.module == "finance"
        assert permission.is_active is True

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            PermissionCreate(name="   ", route="/x", module="general")

    def test_missing_route_rejected(self):
        with pytest.raises(ValidationError):
            PermissionCreate(name="billing", module="finance")

    def test_update_partial(self):
        update = PermissionUpdate(module="Content")
        assert update.model_dump(exclude_unset=True) == {"module": "content"}

    def test_update_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            PermissionUpdate(name="   ")
        with pytest.raises(ValidationError):
            PermissionUpdate(module=" ")


class TestGrantSchemas:

    def test_grant_valid(self):
        grant = PermissionGrantIn(permission_id=1, granted_actions=["edit", "view"])
        assert grant.granted_actions == [Action.EDIT, Action.VIEW]

    def test_unknown_action_rejected(self):
        with pytest.raises(ValidationError):
            PermissionGrantIn(permission_id=1, granted_actions=["publish"])

    def test_empty_actions_rejected(self):
        with pytest.raises(ValidationError):
            UserPermissionAssign(user_id=1, permission_id=1, granted_actions=[])

    def test_non_positive_ids_rejected(self):
        with pytest.raises(ValidationError):
            UserPermissionAssign(user_id=0, permission_id=1, granted_actions=["view"])

    def test_bulk_requires_entries(self):
        with pytest.raises(ValidationError):
            UserPermissionBulkAssign(user_id=1, permissions=[])


class TestGroupSchemas:

    def test_group_create_minimal(self):
        group = UserGroupCreate(name="Editors")
        assert group.permissions == []
        assert group.description is None

    def test_group_create_empty_name(self):
        with pytest.raises(ValidationError):
            UserGroupCreate(name="")

    def test_member_add_requires_user(self):
        with pytest.raises(ValidationError):
            GroupMemberAdd()


class TestUserSchemas:

    def test_user_create_valid(self):
        user = UserCreate(
            name="Jane Admin",
            email="jane@example.com",
            password="Password123!",
            permissions=[{"permission_id": 3, "granted_actions": ["create"]}],
            groups=[1, 2],
        )
        assert user.permissions[0].permission_id == 3
        assert user.groups == [1, 2]

    def test_user_create_invalid_email(self):
        with pytest.raises(ValidationError):
            UserCreate(name="Jane", email="not-an-email", password="Password123!")

    def test_user_create_short_password(self):
        with pytest.raises(ValidationError):
            UserCreate(name="Jane", email="jane@example.com", password="short")

    def test_user_create_ignores_role(self):
        user = UserCreate(name="Jane", email="jane@example.com", password="Password123!", role="super_admin")
        assert "role" not in user.model_dump()

    def test_user_update_unknown_role(self):
        with pytest.raises(ValidationError):
            UserUpdate(role="owner")

    def test_user_update_empty(self):
        assert UserUpdate().model_dump(exclude_unset=True) == {}

    def test_user_out_from_attributes(self):
        now = datetime.now(timezone.utc)

        class Row:
            id = 1
            name = "Jane"
            email = "jane@example.com"
            role = "admin"
            is_active = True
            last_login_at = None
            created_at = now
            updated_at = now
            password = "hash"

        out = UserOut.model_validate(Row())
        assert out.email == "jane@example.com"
        assert "password" not in out.model_dump()


class TestAuthSchemas:

    def test_login_valid(self):
        login = Login(email="test@example.com", password="Password123!")
        assert login.email == "test@example.com"

    def test_login_missing_password(self):
        with pytest.raises(ValidationError):
            Login(email="test@example.com")
