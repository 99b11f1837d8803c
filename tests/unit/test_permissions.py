"""
Unit tests for app/core/permissions.py

Action vocabulary, the 'view' invariant and the HTTP verb mapping.
"""

import pytest

from app.core.exceptions import InvalidInput
from app.core.permissions import (
    Action,
    ALL_ACTIONS,
    action_from_method,
    action_values,
    format_requirement,
    normalize_actions,
    validate_actions,
)


class TestNormalizeActions:
    """normalize_actions always yields a sorted set containing 'view'."""

    def test_view_is_injected(self):
        assert action_values(normalize_actions(["edit"])) == ["edit", "view"]

    def test_view_only(self):
        assert normalize_actions(["view"]) == [Action.VIEW]

    def test_duplicates_removed_and_sorted(self):
        result = normalize_actions(["delete", "edit", "delete", "create"])
        assert action_values(result) == ["create", "delete", "edit", "view"]

    def test_accepts_enum_members(self):
        assert normalize_actions([Action.CREATE]) == [Action.CREATE, Action.VIEW]

    def test_case_and_whitespace_tolerated(self):
        assert action_values(normalize_actions([" EDIT "])) == ["edit", "view"]

    def test_every_action(self):
        assert normalize_actions(ALL_ACTIONS) == sorted(ALL_ACTIONS, key=lambda a: a.value)

    def test_empty_rejected(self):
        with pytest.raises(InvalidInput):
            normalize_actions([])

    def test_none_rejected(self):
        with pytest.raises(InvalidInput):
            normalize_actions(None)

    def test_unknown_action_rejected(self):
        with pytest.raises(InvalidInput) as exc_info:
            normalize_actions(["view", "publish"])
        assert "publish" in exc_info.value.message


class TestValidateActions:

    def test_split_valid_and_invalid(self):
        valid, invalid = validate_actions(["view", "archive", "edit"])
        assert valid == ["view", "edit"]
        assert invalid == ["archive"]


class TestActionFromMethod:

    @pytest.mark.parametrize("method,expected", [
        ("GET", Action.VIEW),
        ("HEAD", Action.VIEW),
        ("POST", Action.CREATE),
        ("PUT", Action.EDIT),
        ("PATCH", Action.EDIT),
        ("DELETE", Action.DELETE),
        ("get", Action.VIEW),
    ])
    def test_mapping(self, method, expected):
        assert action_from_method(method) == expected

    def test_unknown_method_defaults_to_view(self):
        assert action_from_method("OPTIONS") == Action.VIEW
        assert action_from_method("") == Action.VIEW


def test_format_requirement():
    assert format_requirement("billing", Action.DELETE) == "billing:delete"
    assert format_requirement("billing", "view") == "billing:view"
