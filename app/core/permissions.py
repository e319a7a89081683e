from enum import Enum
from typing import FrozenSet, Iterable
from app.core import errors

class Role(str, Enum):
    REPORTER = "reporter"
    MANAGER = "manager"
    TECHNICIAN = "technician"

class Action(str, Enum):
    CREATE = "create"
    EDIT = "edit"
    ASSIGN = "assign"
    START = "start"
    RESOLVE = "resolve"
    DELETE = "delete"
    PROVISION = "provision"
    DEPROVISION = "deprovision"

ROLE_ACTIONS = {
    Role.REPORTER: frozenset({Action.CREATE, Action.EDIT, Action.DELETE}),
    Role.MANAGER: frozenset({Action.EDIT, Action.ASSIGN, Action.DELETE, Action.PROVISION, Action.DEPROVISION}),
    Role.TECHNICIAN: frozenset({Action.START, Action.RESOLVE}),
}

# Login entry points and the roles each one lets through
REPORTER_ENTRY = frozenset({Role.REPORTER})
STAFF_ENTRY = frozenset({Role.MANAGER, Role.TECHNICIAN})

DASHBOARD_ROUTES = {
    Role.REPORTER: "/dashboard",
    Role.MANAGER: "/dashboard",
    Role.TECHNICIAN: "/tech-dashboard",
}

def actions_for(role: str) -> FrozenSet[Action]:
    try:
        return ROLE_ACTIONS[Role(role)]
    except ValueError:
        return frozenset()

def require_action(role: str, action: Action):
    if action not in actions_for(role):
        raise errors.UnauthorizedRole(f"Role '{role}' may not {action.value} breakdowns.")

def require_role(role: str, accepted: Iterable[Role]):
    if role not in {r.value for r in accepted}:
        raise errors.UnauthorizedRole()
