"""Permission matrix evaluation.

A rank's permission matrix maps a resource name to its action flags, e.g.::

    {"messages": {"create": True, "read": True, "update": False, "delete": False},
     "users": {"read": {"enabled": True}},
     "userApproval": {"approve": True, "reject": False}}

Resources form a closed set. Anything outside it, and any entry missing from a
stored matrix, is denied.
"""

import enum
from collections.abc import Mapping
from typing import Any, Optional, Union


class Action(str, enum.Enum):
    create = "create"
    read = "read"
    update = "update"
    delete = "delete"
    approve = "approve"
    reject = "reject"


CRUD_ACTIONS = frozenset({Action.create, Action.read, Action.update, Action.delete})
APPROVAL_ACTIONS = frozenset({Action.approve, Action.reject})
CRUD_ORDER = ("create", "read", "update", "delete")


class Resource(str, enum.Enum):
    """Resource kinds guarded by the permission matrix."""

    users = "users"
    meetings = "meetings"
    events = "events"
    assignments = "assignments"
    routes = "routes"
    roles = "roles"
    messages = "messages"
    polls = "polls"
    announcements = "announcements"
    researches = "researches"
    documents = "documents"
    activity_logs = "activityLogs"
    user_approval = "userApproval"

    @property
    def actions(self) -> frozenset:
        if self is Resource.user_approval:
            return APPROVAL_ACTIONS
        return CRUD_ACTIONS

    @classmethod
    def parse(cls, value: Union["Resource", str, None]) -> Optional["Resource"]:
        """Return the matching resource, or None for unknown names."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None


def _parse_action(value: Union[Action, str]) -> Optional[Action]:
    if isinstance(value, Action):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Action(value)
    except ValueError:
        return None


def _flag(value: Any) -> bool:
    # users.read is stored either as a bool or as {"enabled": bool}
    if isinstance(value, Mapping):
        return value.get("enabled") is True
    return value is True


def has_permission(
    matrix: Optional[Mapping],
    resource: Union[Resource, str],
    action: Optional[Union[Action, str]] = None,
) -> bool:
    """Check a (resource, action) pair against a permission matrix.

    Without an action, answers whether *any* action on the resource is granted
    (for ``userApproval``: approve or reject). Unknown resources, unknown
    actions and missing entries all evaluate to False.
    """
    if not isinstance(matrix, Mapping):
        return False

    kind = Resource.parse(resource)
    if kind is None:
        return False

    entry = matrix.get(kind.value)
    if not isinstance(entry, Mapping):
        return False

    if action is None:
        return any(_flag(entry.get(a.value)) for a in kind.actions)

    verb = _parse_action(action)
    if verb is None or verb not in kind.actions:
        return False
    return _flag(entry.get(verb.value))


def grants_or_unset(matrix: Optional[Mapping], resource: Resource, action: Action) -> bool:
    """Like has_permission, but a matrix with no entry for the resource allows.

    Chat posting and poll creation are open to every member unless the rank's
    matrix explicitly carries an entry for the resource.
    """
    if isinstance(matrix, Mapping) and resource.value not in matrix:
        return True
    return has_permission(matrix, resource, action)


def default_permissions() -> dict:
    """All-denied matrix assigned to new ranks."""
    stock = (
        Resource.users,
        Resource.meetings,
        Resource.events,
        Resource.assignments,
        Resource.routes,
        Resource.roles,
    )
    return {r.value: {a: False for a in CRUD_ORDER} for r in stock}


def normalize_matrix(raw: Any) -> dict:
    """Drop unknown resources/actions and coerce flags to booleans."""
    if not isinstance(raw, Mapping):
        return {}

    matrix = {}
    for key, entry in raw.items():
        kind = Resource.parse(key)
        if kind is None or not isinstance(entry, Mapping):
            continue
        cleaned = {}
        for action_key, value in entry.items():
            verb = _parse_action(action_key)
            if verb is None or verb not in kind.actions:
                continue
            if kind is Resource.users and verb is Action.read and isinstance(value, Mapping):
                cleaned[verb.value] = {"enabled": value.get("enabled") is True}
            else:
                cleaned[verb.value] = value is True
        matrix[kind.value] = cleaned
    return matrix
