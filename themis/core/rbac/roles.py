"""Role definitions for Themis.

Roles are a closed enumeration. The same value is used as the display key
and the logic key, so anything that is not a member parses to ``None`` and
is denied everywhere.

Access levels decide which projects a role can see:
1. ALL - every project in the organization
2. DEPARTMENT - projects of the actor's department plus their own
3. OWN - only projects the actor owns
"""

from enum import Enum
from typing import Any, Dict, FrozenSet, Optional


class Role(str, Enum):
    """Organizational roles an actor can hold."""

    ADMIN = "ADMIN"
    PROJECT_MANAGER = "PROJECT_MANAGER"
    TEAM_LEAD = "TEAM_LEAD"
    DEVELOPER = "DEVELOPER"
    DESIGNER = "DESIGNER"
    QA = "QA"
    SUB_PMO = "SUB_PMO"
    MAIN_PMO = "MAIN_PMO"
    DEPARTMENT_DIRECTOR = "DEPARTMENT_DIRECTOR"
    EXECUTIVE = "EXECUTIVE"
    MANAGER = "MANAGER"
    PENDING = "PENDING"       # Registered, awaiting account approval


class AccessLevel(str, Enum):
    """Breadth of project visibility granted to a role."""

    ALL = "all"
    DEPARTMENT = "department"
    OWN = "own"


# Workflow role groups
SUBMITTER_ROLES: FrozenSet[Role] = frozenset([
    Role.ADMIN, Role.MAIN_PMO, Role.SUB_PMO, Role.PROJECT_MANAGER,
])
SUB_PMO_REVIEWER_ROLES: FrozenSet[Role] = frozenset([
    Role.SUB_PMO, Role.MAIN_PMO, Role.ADMIN,
])
MAIN_PMO_REVIEWER_ROLES: FrozenSet[Role] = frozenset([
    Role.MAIN_PMO, Role.ADMIN,
])

# Final authority may override ownership and department boundaries
FINAL_AUTHORITY_ROLES: FrozenSet[Role] = frozenset([Role.ADMIN, Role.MAIN_PMO])


DEFAULT_ROLES: Dict[Role, Dict[str, Any]] = {
    Role.ADMIN: {
        "name": "Admin",
        "description": "Full system access and final approval authority",
        "access_level": AccessLevel.ALL,
    },
    Role.PROJECT_MANAGER: {
        "name": "Project Manager",
        "description": "Creates and manages their own projects and tasks",
        "access_level": AccessLevel.OWN,
    },
    Role.TEAM_LEAD: {
        "name": "Team Lead",
        "description": "Creates tasks and approves task work for their team",
        "access_level": AccessLevel.OWN,
    },
    Role.DEVELOPER: {
        "name": "Developer",
        "description": "Works on and updates their assigned tasks",
        "access_level": AccessLevel.OWN,
    },
    Role.DESIGNER: {
        "name": "Designer",
        "description": "Works on assigned design tasks",
        "access_level": AccessLevel.OWN,
    },
    Role.QA: {
        "name": "QA",
        "description": "Works on assigned quality assurance tasks",
        "access_level": AccessLevel.OWN,
    },
    Role.SUB_PMO: {
        "name": "Sub PMO",
        "description": "First-tier reviewer for projects in their department",
        "access_level": AccessLevel.DEPARTMENT,
    },
    Role.MAIN_PMO: {
        "name": "Main PMO",
        "description": "Final-tier reviewer with organization-wide authority",
        "access_level": AccessLevel.ALL,
    },
    Role.DEPARTMENT_DIRECTOR: {
        "name": "Department Director",
        "description": "Oversees department portfolio, approves change requests",
        "access_level": AccessLevel.DEPARTMENT,
    },
    Role.EXECUTIVE: {
        "name": "Executive",
        "description": "Read-only view across the whole portfolio",
        "access_level": AccessLevel.ALL,
    },
    Role.MANAGER: {
        "name": "Manager",
        "description": "Line manager with access to their own items",
        "access_level": AccessLevel.OWN,
    },
    Role.PENDING: {
        "name": "Pending",
        "description": "Account awaiting approval, holds no permissions",
        "access_level": None,
    },
}


def parse_role(value: Any) -> Optional[Role]:
    """Resolve a role value, returning None for anything unrecognized."""
    if isinstance(value, Role):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return Role(value.strip().upper())
    except ValueError:
        return None


def get_access_level(role: Any) -> Optional[AccessLevel]:
    """Get the visibility level for a role (None for unknown or pending)."""
    resolved = parse_role(role)
    if resolved is None:
        return None
    return DEFAULT_ROLES[resolved]["access_level"]


def get_role_label(role: Any) -> str:
    """Human-readable role name, falling back to the raw value."""
    resolved = parse_role(role)
    if resolved is None:
        return str(role) if role else "Unknown"
    return DEFAULT_ROLES[resolved]["name"]
