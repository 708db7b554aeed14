"""RBAC (Role-Based Access Control) module for Themis.

This module defines roles, the permission catalogue, and the capability
engine every surface consults before allowing an action.
"""

from .roles import AccessLevel, Role, get_access_level, parse_role
from .context import Actor, ResourceContext
from .permissions import PERMISSION_RULES, PermissionName, PermissionRule
from .checker import (
    RoleCapabilityEngine,
    can_view,
    evaluate,
    explain,
    get_role_permissions,
    require_permission,
)

__all__ = [
    "AccessLevel",
    "Actor",
    "PERMISSION_RULES",
    "PermissionName",
    "PermissionRule",
    "ResourceContext",
    "Role",
    "RoleCapabilityEngine",
    "can_view",
    "evaluate",
    "explain",
    "get_access_level",
    "get_role_permissions",
    "parse_role",
    "require_permission",
]
