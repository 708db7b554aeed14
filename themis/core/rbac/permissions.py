"""Permission catalogue for Themis RBAC.

The catalogue is closed: every permission is a member of ``PermissionName``
and has exactly one rule in ``PERMISSION_RULES``. Anything else is denied.

A rule splits the roles that may hold a permission into:
  - allow: granted regardless of the resource
  - own_only: granted only for resources the actor owns
  - not_own: granted only for resources the actor does not own
    (segregation of duties for approvals)
  - same_department: roles that must also share the resource's department
"""

from enum import Enum
from typing import Any, Dict, FrozenSet, List, NamedTuple, Optional

from .roles import Role


class PermissionName(str, Enum):
    """Named capabilities that can be evaluated against an actor."""

    # Projects
    CREATE_PROJECT = "CREATE_PROJECT"
    EDIT_PROJECT = "EDIT_PROJECT"
    SUBMIT_PROJECT = "SUBMIT_PROJECT"
    APPROVE_PROJECT = "APPROVE_PROJECT"
    REQUEST_CHANGES = "REQUEST_CHANGES"
    DELETE_PROJECT = "DELETE_PROJECT"
    VIEW_ALL_PROJECTS = "VIEW_ALL_PROJECTS"
    VIEW_DEPARTMENT_PROJECTS = "VIEW_DEPARTMENT_PROJECTS"
    MANAGE_LEGACY_PROJECTS = "MANAGE_LEGACY_PROJECTS"

    # Tasks
    CREATE_TASK = "CREATE_TASK"
    EDIT_TASK = "EDIT_TASK"
    APPROVE_TASK = "APPROVE_TASK"

    # Weekly updates
    SUBMIT_WEEKLY_UPDATE = "SUBMIT_WEEKLY_UPDATE"
    APPROVE_WEEKLY_UPDATE = "APPROVE_WEEKLY_UPDATE"
    APPROVE_WEEKLY_UPDATE_SUB_PMO = "APPROVE_WEEKLY_UPDATE_SUB_PMO"
    APPROVE_WEEKLY_UPDATE_MAIN_PMO = "APPROVE_WEEKLY_UPDATE_MAIN_PMO"

    # Change requests
    CREATE_CHANGE_REQUEST = "CREATE_CHANGE_REQUEST"
    APPROVE_CHANGE_REQUEST_SUB_PMO = "APPROVE_CHANGE_REQUEST_SUB_PMO"
    APPROVE_CHANGE_REQUEST_MAIN_PMO = "APPROVE_CHANGE_REQUEST_MAIN_PMO"
    APPROVE_CHANGE_REQUEST_DIRECTOR = "APPROVE_CHANGE_REQUEST_DIRECTOR"

    # Organization
    MANAGE_DEPARTMENTS = "MANAGE_DEPARTMENTS"
    MANAGE_USERS = "MANAGE_USERS"
    ASSIGN_ROLES = "ASSIGN_ROLES"
    MANAGE_RISKS = "MANAGE_RISKS"
    VIEW_FINANCIALS = "VIEW_FINANCIALS"
    EDIT_FINANCIALS = "EDIT_FINANCIALS"
    VIEW_SENSITIVE_DATA = "VIEW_SENSITIVE_DATA"
    VIEW_AUDIT_LOGS = "VIEW_AUDIT_LOGS"


class PermissionRule(NamedTuple):
    """Which roles hold a permission, and under what resource conditions."""
    allow: FrozenSet[Role] = frozenset()
    own_only: FrozenSet[Role] = frozenset()
    not_own: FrozenSet[Role] = frozenset()
    same_department: FrozenSet[Role] = frozenset()

    @property
    def holders(self) -> FrozenSet[Role]:
        """Every role that can hold the permission in some context."""
        return self.allow | self.own_only | self.not_own


def _roles(*roles: Role) -> FrozenSet[Role]:
    return frozenset(roles)


R = Role

PERMISSION_RULES: Dict[PermissionName, PermissionRule] = {
    # Projects
    PermissionName.CREATE_PROJECT: PermissionRule(
        allow=_roles(R.ADMIN, R.PROJECT_MANAGER, R.MAIN_PMO, R.SUB_PMO),
    ),
    PermissionName.EDIT_PROJECT: PermissionRule(
        allow=_roles(R.ADMIN, R.MAIN_PMO, R.SUB_PMO),
        own_only=_roles(R.PROJECT_MANAGER),
    ),
    PermissionName.SUBMIT_PROJECT: PermissionRule(
        allow=_roles(R.ADMIN, R.MAIN_PMO, R.SUB_PMO),
        own_only=_roles(R.PROJECT_MANAGER),
    ),
    PermissionName.APPROVE_PROJECT: PermissionRule(
        allow=_roles(R.ADMIN, R.MAIN_PMO),
        not_own=_roles(R.SUB_PMO),
        same_department=_roles(R.SUB_PMO),
    ),
    PermissionName.REQUEST_CHANGES: PermissionRule(
        allow=_roles(R.ADMIN, R.PROJECT_MANAGER, R.MAIN_PMO, R.SUB_PMO, R.TEAM_LEAD),
    ),
    PermissionName.DELETE_PROJECT: PermissionRule(
        allow=_roles(R.ADMIN, R.DEPARTMENT_DIRECTOR),
    ),
    PermissionName.VIEW_ALL_PROJECTS: PermissionRule(
        allow=_roles(R.ADMIN, R.MAIN_PMO, R.EXECUTIVE),
    ),
    PermissionName.VIEW_DEPARTMENT_PROJECTS: PermissionRule(
        allow=_roles(R.ADMIN, R.MAIN_PMO, R.SUB_PMO, R.DEPARTMENT_DIRECTOR, R.EXECUTIVE),
        same_department=_roles(R.SUB_PMO, R.DEPARTMENT_DIRECTOR),
    ),
    PermissionName.MANAGE_LEGACY_PROJECTS: PermissionRule(
        allow=_roles(R.ADMIN, R.SUB_PMO, R.MAIN_PMO),
    ),

    # Tasks
    PermissionName.CREATE_TASK: PermissionRule(
        allow=_roles(R.ADMIN, R.PROJECT_MANAGER, R.TEAM_LEAD),
    ),
    PermissionName.EDIT_TASK: PermissionRule(
        allow=_roles(R.ADMIN, R.PROJECT_MANAGER),
        own_only=_roles(R.TEAM_LEAD, R.DEVELOPER),
    ),
    PermissionName.APPROVE_TASK: PermissionRule(
        allow=_roles(R.ADMIN, R.PROJECT_MANAGER, R.TEAM_LEAD),
    ),

    # Weekly updates
    PermissionName.SUBMIT_WEEKLY_UPDATE: PermissionRule(
        allow=_roles(R.ADMIN, R.PROJECT_MANAGER),
    ),
    PermissionName.APPROVE_WEEKLY_UPDATE: PermissionRule(
        allow=_roles(R.ADMIN, R.MAIN_PMO, R.SUB_PMO),
    ),
    PermissionName.APPROVE_WEEKLY_UPDATE_SUB_PMO: PermissionRule(
        allow=_roles(R.SUB_PMO, R.MAIN_PMO, R.ADMIN),
    ),
    PermissionName.APPROVE_WEEKLY_UPDATE_MAIN_PMO: PermissionRule(
        allow=_roles(R.MAIN_PMO, R.ADMIN),
    ),

    # Change requests
    PermissionName.CREATE_CHANGE_REQUEST: PermissionRule(
        allow=_roles(R.PROJECT_MANAGER, R.SUB_PMO),
    ),
    PermissionName.APPROVE_CHANGE_REQUEST_SUB_PMO: PermissionRule(
        allow=_roles(R.SUB_PMO, R.MAIN_PMO, R.ADMIN),
    ),
    PermissionName.APPROVE_CHANGE_REQUEST_MAIN_PMO: PermissionRule(
        allow=_roles(R.MAIN_PMO, R.ADMIN),
    ),
    PermissionName.APPROVE_CHANGE_REQUEST_DIRECTOR: PermissionRule(
        allow=_roles(R.DEPARTMENT_DIRECTOR, R.ADMIN),
    ),

    # Organization
    PermissionName.MANAGE_DEPARTMENTS: PermissionRule(
        allow=_roles(R.ADMIN, R.EXECUTIVE, R.MAIN_PMO, R.DEPARTMENT_DIRECTOR),
    ),
    PermissionName.MANAGE_USERS: PermissionRule(
        allow=_roles(R.ADMIN),
    ),
    PermissionName.ASSIGN_ROLES: PermissionRule(
        allow=_roles(R.ADMIN, R.DEPARTMENT_DIRECTOR, R.MAIN_PMO),
    ),
    PermissionName.MANAGE_RISKS: PermissionRule(
        allow=_roles(R.PROJECT_MANAGER, R.SUB_PMO, R.MAIN_PMO, R.ADMIN),
    ),
    PermissionName.VIEW_FINANCIALS: PermissionRule(
        allow=_roles(
            R.PROJECT_MANAGER, R.SUB_PMO, R.MAIN_PMO,
            R.DEPARTMENT_DIRECTOR, R.EXECUTIVE, R.ADMIN,
        ),
    ),
    PermissionName.EDIT_FINANCIALS: PermissionRule(
        allow=_roles(R.ADMIN, R.MAIN_PMO, R.DEPARTMENT_DIRECTOR),
    ),
    PermissionName.VIEW_SENSITIVE_DATA: PermissionRule(
        allow=_roles(R.ADMIN, R.MAIN_PMO, R.SUB_PMO, R.DEPARTMENT_DIRECTOR, R.EXECUTIVE),
    ),
    PermissionName.VIEW_AUDIT_LOGS: PermissionRule(
        allow=_roles(R.ADMIN, R.MAIN_PMO),
    ),
}

del R


def parse_permission(value: Any) -> Optional[PermissionName]:
    """Resolve a permission name, returning None if it is not catalogued."""
    if isinstance(value, PermissionName):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return PermissionName(value.strip().upper())
    except ValueError:
        return None


def is_valid_permission(value: Any) -> bool:
    """Check if a permission name is part of the catalogue."""
    return parse_permission(value) in PERMISSION_RULES


def get_permission_rule(permission: Any) -> Optional[PermissionRule]:
    """Get the rule for a permission, or None when it is not catalogued."""
    resolved = parse_permission(permission)
    if resolved is None:
        return None
    return PERMISSION_RULES.get(resolved)


def get_all_permissions() -> List[str]:
    """Get all catalogued permission names."""
    return [p.value for p in PERMISSION_RULES]
