"""Permission introspection endpoints.

The UI asks these before showing an action; the authoritative check is
repeated by every mutating endpoint.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from themis.api.deps import get_current_actor
from themis.core.approval.states import parse_status
from themis.core.rbac import (
    PERMISSION_RULES,
    Actor,
    PermissionName,
    ResourceContext,
    explain,
    get_access_level,
    get_role_permissions,
    require_permission,
)
from themis.core.rbac.roles import get_role_label

router = APIRouter(prefix="/permissions", tags=["permissions"])


# Schemas
class ActorPermissionsResponse(BaseModel):
    user_id: str
    role: Optional[str]
    role_label: str
    department_id: Optional[str]
    access_level: Optional[str]
    permissions: List[str]


class EvaluateRequest(BaseModel):
    permission: str = Field(..., min_length=1)
    owner_id: Optional[str] = None
    is_own_item: Optional[bool] = None
    department_id: Optional[str] = None
    current_approval_status: Optional[str] = None


class EvaluateResponse(BaseModel):
    permission: str
    granted: bool
    reason: Optional[str] = None
    message: Optional[str] = None


class PermissionRuleResponse(BaseModel):
    permission: str
    allow: List[str]
    own_only: List[str]
    not_own: List[str]
    same_department: List[str]


def _names(roles) -> List[str]:
    return sorted(r.value for r in roles)


# Endpoints
@router.get("/me", response_model=ActorPermissionsResponse)
async def get_my_permissions(actor: Actor = Depends(get_current_actor)):
    """Permissions the caller's role can hold in some resource context."""
    role = actor.resolved_role
    level = get_access_level(role)
    return ActorPermissionsResponse(
        user_id=actor.user_id,
        role=role.value if role else None,
        role_label=get_role_label(actor.role),
        department_id=actor.department_id,
        access_level=level.value if level else None,
        permissions=[p.value for p in get_role_permissions(role)],
    )


@router.post("/evaluate", response_model=EvaluateResponse)
async def evaluate_permission(
    request: EvaluateRequest,
    actor: Actor = Depends(get_current_actor),
):
    """Evaluate one permission for the caller against a described resource."""
    context = ResourceContext(
        owner_id=request.owner_id,
        is_own_item=request.is_own_item,
        department_id=request.department_id,
        current_approval_status=parse_status(request.current_approval_status),
    )
    denial = explain(request.permission, actor, context)
    if denial is None:
        return EvaluateResponse(permission=request.permission, granted=True)
    return EvaluateResponse(
        permission=request.permission,
        granted=False,
        reason=denial.reason.value,
        message=denial.message,
    )


@router.get("", response_model=List[PermissionRuleResponse])
async def list_permission_rules(
    actor: Actor = Depends(require_permission(PermissionName.ASSIGN_ROLES)),
):
    """The full permission catalogue, for role administration screens."""
    return [
        PermissionRuleResponse(
            permission=perm.value,
            allow=_names(rule.allow),
            own_only=_names(rule.own_only),
            not_own=_names(rule.not_own),
            same_department=_names(rule.same_department),
        )
        for perm, rule in PERMISSION_RULES.items()
    ]
