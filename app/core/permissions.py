"""
Permission vocabulary for the access-control system.

Defines the closed set of actions, the HTTP verb mapping used when a route does
not name its action explicitly, and the single function that enforces the
"view is always granted" invariant on every stored action set.
"""

from enum import Enum
from typing import Dict, Iterable, List, Tuple

from app.core.exceptions import InvalidInput


class Action(str, Enum):
    """Actions that can be granted on a permission"""
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"


ALL_ACTIONS: Tuple[Action, ...] = tuple(Action)

ACTION_VALUES = frozenset(action.value for action in Action)


# HTTP verb -> required action, for routes that rely on auto-detection
METHOD_ACTIONS: Dict[str, Action] = {
    "GET": Action.VIEW,
    "HEAD": Action.VIEW,
    "POST": Action.CREATE,
    "PUT": Action.EDIT,
    "PATCH": Action.EDIT,
    "DELETE": Action.DELETE,
}


def validate_actions(actions: Iterable[str]) -> Tuple[List[str], List[str]]:
    """
    Split a collection of raw action names into known and unknown entries.

    Args:
        actions: Raw action values (strings or Action members)

    Returns:
        (valid, invalid) lists, each in input order
    """
    valid, invalid = [], []
    for action in actions:
        value = action.value if isinstance(action, Action) else str(action).strip().lower()
        if value in ACTION_VALUES:
            valid.append(value)
        else:
            invalid.append(str(action))
    return valid, invalid


def normalize_actions(actions: Iterable[str]) -> List[Action]:
    """
    Normalize an action set before it is persisted.

    Every write that sets or replaces a granted-actions collection goes through
    here: unknown actions are rejected, duplicates removed and `view` added when
    missing. The result is sorted by value.

    Raises:
        InvalidInput: empty collection or unknown action names
    """
    actions = list(actions or [])
    if not actions:
        raise InvalidInput("At least one action must be granted")

    valid, invalid = validate_actions(actions)
    if invalid:
        raise InvalidInput(
            f"Invalid actions: {', '.join(invalid)}. "
            f"Allowed: {', '.join(sorted(ACTION_VALUES))}"
        )

    normalized = set(valid)
    normalized.add(Action.VIEW.value)
    return [Action(value) for value in sorted(normalized)]


def action_values(actions: Iterable[Action]) -> List[str]:
    """Plain string values, the shape stored in the database."""
    return [action.value if isinstance(action, Action) else str(action) for action in actions]


def action_from_method(method: str) -> Action:
    """
    Derive the required action from an HTTP verb.

    Unknown verbs fall back to VIEW.
    """
    return METHOD_ACTIONS.get((method or "").upper(), Action.VIEW)


def format_requirement(permission_name: str, action) -> str:
    """Render a requirement the way deny messages name it: `name:action`."""
    value = action.value if isinstance(action, Action) else action
    return f"{permission_name}:{value}"
