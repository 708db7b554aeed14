"""Permission evaluation for Themis.

``evaluate`` is the single decision point every UI surface and mutating
operation consults. It is a pure function of its inputs and never raises:
unknown permissions, unknown roles and missing actors are all denials.
"""

from typing import Any, Callable, List, Optional

from fastapi import Depends, HTTPException, status

from themis.core.outcomes import DenialReason, PermissionDenied
from .context import Actor, ResourceContext
from .permissions import (
    PERMISSION_RULES,
    PermissionName,
    PermissionRule,
    parse_permission,
)
from .roles import AccessLevel, Role, get_access_level, parse_role


WEEKLY_UPDATE_LEVEL_PERMISSIONS = {
    "SUB_PMO": PermissionName.APPROVE_WEEKLY_UPDATE_SUB_PMO,
    "MAIN_PMO": PermissionName.APPROVE_WEEKLY_UPDATE_MAIN_PMO,
}

CHANGE_REQUEST_LEVEL_PERMISSIONS = {
    "SUB_PMO": PermissionName.APPROVE_CHANGE_REQUEST_SUB_PMO,
    "MAIN_PMO": PermissionName.APPROVE_CHANGE_REQUEST_MAIN_PMO,
    "DIRECTOR": PermissionName.APPROVE_CHANGE_REQUEST_DIRECTOR,
}


class RoleCapabilityEngine:
    """Decides whether an actor may exercise a permission against a resource."""

    def __init__(self, rules: Optional[dict] = None):
        """
        Args:
            rules: Permission rule table. Defaults to the built-in catalogue.
        """
        self.rules = PERMISSION_RULES if rules is None else rules

    def evaluate(
        self,
        permission: Any,
        actor: Optional[Actor],
        context: Optional[ResourceContext] = None,
    ) -> bool:
        """Check if the actor holds the permission for this resource."""
        return self.explain(permission, actor, context) is None

    def explain(
        self,
        permission: Any,
        actor: Optional[Actor],
        context: Optional[ResourceContext] = None,
    ) -> Optional[PermissionDenied]:
        """
        Evaluate a permission and describe the denial, if any.

        Returns:
            None when granted, otherwise a PermissionDenied naming the reason
        """
        perm = parse_permission(permission)
        rule = self.rules.get(perm) if perm is not None else None
        if rule is None:
            return PermissionDenied(
                DenialReason.UNKNOWN_PERMISSION,
                f"Unknown permission: {permission}",
                {"permission": str(permission)},
            )

        role = parse_role(actor.role) if actor is not None else None
        if role is None:
            return PermissionDenied(
                DenialReason.UNKNOWN_ROLE,
                "Actor has no recognized role",
                {
                    "permission": perm.value,
                    "role": None if actor is None else _raw(actor.role),
                },
            )

        if self._grants(rule, role, actor, context):
            return None

        return PermissionDenied(
            DenialReason.PERMISSION_DENIED,
            f"Role {role.value} may not {perm.value.lower().replace('_', ' ')}",
            {"permission": perm.value, "role": role.value},
        )

    def get_role_permissions(self, role: Any) -> List[PermissionName]:
        """Permissions a role can hold in at least one resource context."""
        resolved = parse_role(role)
        if resolved is None:
            return []
        return [perm for perm, rule in self.rules.items() if resolved in rule.holders]

    def can_view(self, actor: Optional[Actor], context: ResourceContext) -> bool:
        """
        Check project visibility from the actor's access level.

        ALL sees everything; DEPARTMENT sees its department and owned items;
        OWN sees owned items only.
        """
        if actor is None:
            return False
        level = get_access_level(actor.role)
        if level is None:
            return False
        if level == AccessLevel.ALL:
            return True
        if context.owned_by(actor):
            return True
        if level == AccessLevel.DEPARTMENT:
            return context.department_id is not None and context.in_department_of(actor)
        return False

    def can_approve_weekly_update(self, actor: Optional[Actor], level: str) -> bool:
        """Check tiered weekly update approval (SUB_PMO or MAIN_PMO)."""
        perm = WEEKLY_UPDATE_LEVEL_PERMISSIONS.get(str(level).upper())
        return perm is not None and self.evaluate(perm, actor)

    def can_approve_change_request(self, actor: Optional[Actor], level: str) -> bool:
        """Check tiered change request approval (SUB_PMO, MAIN_PMO or DIRECTOR)."""
        perm = CHANGE_REQUEST_LEVEL_PERMISSIONS.get(str(level).upper())
        return perm is not None and self.evaluate(perm, actor)

    @staticmethod
    def _grants(
        rule: PermissionRule,
        role: Role,
        actor: Actor,
        context: Optional[ResourceContext],
    ) -> bool:
        if role in rule.same_department and context is not None:
            if not context.in_department_of(actor):
                return False

        if role in rule.allow:
            return True

        if role in rule.own_only:
            return context is not None and context.owned_by(actor)

        # Segregation of duties: ownership must be known to be absent
        if role in rule.not_own:
            return context is not None and not context.owned_by(actor)

        return False


def _raw(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value.value if isinstance(value, Role) else str(value)


default_engine = RoleCapabilityEngine()


def evaluate(
    permission: Any,
    actor: Optional[Actor],
    context: Optional[ResourceContext] = None,
) -> bool:
    """
    Check if an actor may exercise a permission.

    Args:
        permission: PermissionName or its string value
        actor: Acting identity (None is treated as unauthenticated)
        context: Target resource, needed for ownership and department rules

    Returns:
        True if granted; False for denials, unknown roles or unknown permissions
    """
    return default_engine.evaluate(permission, actor, context)


def explain(
    permission: Any,
    actor: Optional[Actor],
    context: Optional[ResourceContext] = None,
) -> Optional[PermissionDenied]:
    """Evaluate a permission, returning the denial (or None if granted)."""
    return default_engine.explain(permission, actor, context)


def get_role_permissions(role: Any) -> List[PermissionName]:
    """Get all permissions a role can hold."""
    return default_engine.get_role_permissions(role)


def can_view(actor: Optional[Actor], context: ResourceContext) -> bool:
    """Check if an actor can see a resource given their access level."""
    return default_engine.can_view(actor, context)


def can_approve_weekly_update(actor: Optional[Actor], level: str) -> bool:
    return default_engine.can_approve_weekly_update(actor, level)


def can_approve_change_request(actor: Optional[Actor], level: str) -> bool:
    return default_engine.can_approve_change_request(actor, level)


def get_weekly_update_approval_sequence() -> List[Role]:
    """Roles that sign off a weekly update, in order."""
    return [Role.SUB_PMO, Role.MAIN_PMO]


def get_change_request_approval_sequence() -> List[Role]:
    """Roles that sign off a change request, in order."""
    return [Role.SUB_PMO, Role.MAIN_PMO, Role.DEPARTMENT_DIRECTOR]


def require_permission(permission: PermissionName) -> Callable[..., Actor]:
    """
    Dependency factory for FastAPI endpoints requiring a role-only permission.

    Ownership-sensitive permissions need the loaded resource and are checked
    inside the endpoint instead.

    Usage:
        @router.post("/projects")
        async def create_project(
            actor: Actor = Depends(require_permission(PermissionName.CREATE_PROJECT)),
        ):
            ...
    """
    # Import here to avoid circular imports
    from themis.api.deps import get_current_actor

    def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        denial = explain(permission, actor)
        if denial is not None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=denial.to_dict(),
            )
        return actor

    return dependency
